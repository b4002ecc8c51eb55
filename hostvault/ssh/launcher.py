"""Launcher: hands a record to an external ``sshpass``/``ssh`` process."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Callable, Dict, List, Optional, Protocol

from hostvault.errors import LauncherUnavailable
from hostvault.vault.models import ConnectionDetails, CredentialRecord

logger = logging.getLogger("hostvault.ssh")


class Launcher(Protocol):
    def connect(self, record: CredentialRecord) -> int: ...


class SshpassLauncher:
    """Runs ``sshpass -e ssh`` with the password passed through ``$SSHPASS``.

    The password leaves this process in the child's environment; it cannot be
    wiped on the other side of that boundary.
    """

    def __init__(
        self,
        host_key_checking: str = "accept-new",
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.host_key_checking = host_key_checking
        self._run = runner or subprocess.run
        self._which = which

    def available(self) -> bool:
        return self._which("sshpass") is not None and self._which("ssh") is not None

    def build_argv(self, details: ConnectionDetails) -> List[str]:
        return [
            "sshpass",
            "-e",
            "ssh",
            "-tt",
            "-p",
            str(details.port),
            "-o",
            f"StrictHostKeyChecking={self.host_key_checking}",
            "--",
            f"{details.username}@{details.host}",
        ]

    def build_env(self, details: ConnectionDetails) -> Dict:
        env: Dict = dict(os.environ)
        env.setdefault("TERM", "xterm-256color")
        env["SSHPASS"] = bytes(details.password)
        return env

    def connect(self, record: CredentialRecord) -> int:
        if not self.available():
            raise LauncherUnavailable(
                "sshpass is not installed or not in PATH. "
                f"Connect manually with: {record.ssh_command()}"
            )

        logger.info("Connecting to %s (port %d)", record.name, record.port)
        with record.connection() as details:
            env = self.build_env(details)
            try:
                result = self._run(self.build_argv(details), env=env, check=False)
            finally:
                env.pop("SSHPASS", None)

        if result.returncode != 0:
            logger.warning("ssh exited with status %d", result.returncode)
        return result.returncode
