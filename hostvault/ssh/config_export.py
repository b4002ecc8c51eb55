"""Render records as ``~/.ssh/config`` host blocks. Passwords are never written."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from hostvault.vault.models import CredentialRecord

logger = logging.getLogger("hostvault.ssh")

MANAGED_MARKER = "# HostVault managed entries"


def _alias(name: str) -> str:
    # ssh_config patterns cannot contain whitespace
    return "-".join(name.split())


def render_ssh_config(records: Iterable[CredentialRecord]) -> str:
    blocks = []
    for record in records:
        blocks.append(
            f"Host {_alias(record.name)}\n"
            f"  HostName {record.host}\n"
            f"  User {record.username}\n"
            f"  Port {record.port}\n"
        )
    return "\n".join(blocks)


def default_ssh_config_path() -> Path:
    return Path.home() / ".ssh" / "config"


def append_ssh_config(records: Iterable[CredentialRecord], path: Path | None = None) -> Path:
    """Append host blocks under a marker, leaving existing entries untouched."""
    path = path or default_ssh_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    if os.name != "nt":
        try:
            os.chmod(path.parent, 0o700)
        except OSError:
            pass

    body = render_ssh_config(records)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(f"\n{MANAGED_MARKER}\n{body}")
    if os.name != "nt":
        os.chmod(path, 0o600)
    logger.info("SSH config entries appended to %s", path)
    return path
