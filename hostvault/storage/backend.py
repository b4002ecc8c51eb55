"""StorageBackend: atomic writes, change detection, file locking, permissions."""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import platform
import tempfile
import time
from pathlib import Path
from typing import Iterator, Optional

from hostvault.config import Config
from hostvault.errors import AlreadyExists, ConflictError, StorageError, VaultNotFound

logger = logging.getLogger("hostvault.storage")

TEMP_PREFIX = "hv_tmp_"


class StorageBackend:
    """Vault file I/O with atomic replace and optimistic conflict detection."""

    def __init__(self, vault_path: Path):
        self.vault_path = Path(vault_path)
        self.lock_path = self.vault_path.parent / (self.vault_path.name + ".lock")

    # -- read ---------------------------------------------------------------
    def exists(self) -> bool:
        return self.vault_path.exists()

    def read(self) -> bytes:
        try:
            size = self.vault_path.stat().st_size
            if size > Config.MAX_VAULT_SIZE:
                raise StorageError(
                    f"Vault too large: {size} bytes (max {Config.MAX_VAULT_SIZE})"
                )

            if platform.system() != "Windows":
                st = self.vault_path.stat()
                if st.st_mode & 0o077:
                    logger.warning("Vault permissions too open, fixing...")
                    os.chmod(self.vault_path, 0o600)

            return self.vault_path.read_bytes()
        except FileNotFoundError:
            raise VaultNotFound(f"No vault at {self.vault_path}") from None
        except StorageError:
            raise
        except OSError as exc:
            raise StorageError(f"Cannot read vault: {exc}") from exc

    @staticmethod
    def fingerprint(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def current_fingerprint(self) -> Optional[str]:
        try:
            return self.fingerprint(self.vault_path.read_bytes())
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read vault: {exc}") from exc

    # -- write --------------------------------------------------------------
    def write_atomic(
        self,
        data: bytes,
        expected_fingerprint: Optional[str] = None,
        create: bool = False,
    ) -> str:
        """Replace the vault file with *data*; return the new fingerprint.

        ``create`` requires that no vault exists yet. Otherwise, when
        *expected_fingerprint* is given, the file on disk must still hash to it.
        """
        self._ensure_dir()
        with self._exclusive_lock():
            on_disk = self.current_fingerprint()
            if create:
                if on_disk is not None:
                    raise AlreadyExists(f"Vault already exists at {self.vault_path}")
            elif expected_fingerprint is not None and on_disk != expected_fingerprint:
                logger.warning("Vault changed on disk since unlock; refusing to overwrite")
                raise ConflictError()

            temp_path = self._write_temp(data)
            try:
                self._secure_permissions(temp_path)
                os.replace(temp_path, self.vault_path)
            except OSError as exc:
                _unlink_quietly(temp_path)
                raise StorageError(f"Cannot replace vault: {exc}") from exc

        self._secure_permissions(self.vault_path)
        self._cleanup_temp_files()
        logger.info("Vault saved successfully")
        return self.fingerprint(data)

    def _write_temp(self, data: bytes) -> Path:
        old_umask = None
        temp_path: Optional[Path] = None
        try:
            if os.name != "nt":
                old_umask = os.umask(0o077)
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self.vault_path.parent,
                prefix=TEMP_PREFIX,
                suffix=".dat",
                delete=False,
            ) as tmp:
                temp_path = Path(tmp.name)
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            return temp_path
        except OSError as exc:
            if temp_path is not None:
                _unlink_quietly(temp_path)
            raise StorageError(f"Cannot write vault: {exc}") from exc
        finally:
            if old_umask is not None:
                os.umask(old_umask)

    # -- locking ------------------------------------------------------------
    @contextlib.contextmanager
    def _exclusive_lock(self) -> Iterator[None]:
        try:
            self.lock_path.touch(mode=0o600, exist_ok=True)
            lock_file = open(self.lock_path, "r+b")
        except OSError as exc:
            raise StorageError(f"Cannot open lock file: {exc}") from exc

        try:
            if platform.system() != "Windows":
                import fcntl

                try:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                except OSError:
                    raise ConflictError("Vault is being written by another process") from None
            yield
        finally:
            lock_file.close()

    # -- housekeeping -------------------------------------------------------
    def _ensure_dir(self) -> None:
        parent = self.vault_path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create vault directory: {exc}") from exc
        if platform.system() != "Windows":
            try:
                os.chmod(parent, 0o700)
            except OSError:
                pass

    def _secure_permissions(self, path: Path) -> None:
        if platform.system() == "Windows":
            return
        try:
            os.chmod(path, 0o600)
        except OSError as exc:
            logger.warning("Error setting permissions on %s: %s", path, exc)

    def _cleanup_temp_files(self) -> None:
        for tmp in self.vault_path.parent.glob(TEMP_PREFIX + "*"):
            try:
                if time.time() - tmp.stat().st_mtime > 3600:
                    tmp.unlink()
            except OSError:
                pass


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass
