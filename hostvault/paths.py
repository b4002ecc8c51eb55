"""Cross-platform directory resolution."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import platformdirs

from hostvault.config import Config

logger = logging.getLogger("hostvault.paths")

_APP_NAME = "HostVault"
_APP_AUTHOR = "HostVault"


def get_data_dir() -> Path:
    """Return ``$HOSTVAULT_HOME`` or the platform data directory (XDG on Linux)."""
    override = os.environ.get(Config.HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(_APP_NAME, _APP_AUTHOR))


def get_log_dir(data_dir: Path) -> Path:
    return data_dir / "logs"


def get_vault_path(data_dir: Path) -> Path:
    return data_dir / "vault.hv"
