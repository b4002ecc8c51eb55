"""VaultStore and VaultSession: initialize, unlock, mutate, persist, close."""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from hostvault.config import DEFAULT_KDF_PROFILE, KDF_PROFILES
from hostvault.crypto.engine import AuthenticatedCipher, KeyDerivation
from hostvault.crypto.formats import VERSION_FOR_PROFILE, VaultFile, associated_data
from hostvault.errors import (
    AlreadyExists,
    CryptoError,
    DuplicateName,
    SessionActive,
    VaultError,
    VaultLocked,
)
from hostvault.storage.backend import StorageBackend
from hostvault.util.memory import SecureMemory, wipe
from hostvault.util.rate_limit import RateLimiter
from hostvault.vault import codec
from hostvault.vault.index import CredentialIndex
from hostvault.vault.models import CredentialRecord
from hostvault.vault.sources import SecretSource

logger = logging.getLogger("hostvault.vault")

PasswordArg = Union[SecureMemory, bytes, bytearray, SecretSource]


class VaultState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


# ============================================================================
#  VaultSession
# ============================================================================
class VaultSession:
    """Decrypted vault contents plus the key that sealed them.

    Created by :meth:`VaultStore.unlock`. Use as a context manager so the key
    and every password are wiped on all exit paths.
    """

    def __init__(
        self,
        store: VaultStore,
        key: SecureMemory,
        version: int,
        salt: bytes,
        records: List[CredentialRecord],
        fingerprint: str,
    ):
        self._store = store
        self._key = key
        self.version = version
        self.salt = salt
        self._records = records
        self.fingerprint = fingerprint
        self.dirty = False
        self._closed = False

    # -- state --------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise VaultLocked("Vault session is closed")

    # -- read ---------------------------------------------------------------
    @property
    def records(self) -> Tuple[CredentialRecord, ...]:
        self._ensure_open()
        return tuple(self._records)

    @property
    def index(self) -> CredentialIndex:
        self._ensure_open()
        return CredentialIndex(tuple(self._records))

    def lookup(self, name: str) -> CredentialRecord:
        return self.index.lookup(name)

    def search(self, query: str) -> List[CredentialRecord]:
        return self.index.search(query)

    # -- mutate -------------------------------------------------------------
    def add_record(self, record: CredentialRecord) -> None:
        self._ensure_open()
        if any(r.key == record.key or r.id == record.id for r in self._records):
            raise DuplicateName(f"A server named '{record.name}' already exists")
        self._records.append(record)
        self.dirty = True

    def remove_record(self, name: str) -> CredentialRecord:
        """Remove *name* and wipe its password. Returns the wiped record."""
        self._ensure_open()
        position = self._position(name)
        record = self._records.pop(position)
        record.wipe()
        self.dirty = True
        return record

    def replace_record(self, name: str, record: CredentialRecord) -> None:
        """Remove + add, keeping the original position."""
        self._ensure_open()
        position = self._position(name)
        if any(
            r.key == record.key or r.id == record.id
            for i, r in enumerate(self._records)
            if i != position
        ):
            raise DuplicateName(f"A server named '{record.name}' already exists")
        old = self._records[position]
        self._records[position] = record
        if old is not record:
            old.wipe()
        self.dirty = True

    def _position(self, name: str) -> int:
        target = self.index.lookup(name)
        return next(i for i, record in enumerate(self._records) if record is target)

    # -- lifecycle ----------------------------------------------------------
    def persist(self) -> None:
        self._store.persist(self)

    def close(self) -> None:
        self._store.close(self)

    def _wipe(self) -> None:
        try:
            for record in self._records:
                record.wipe()
            self._key.clear()
        finally:
            self._records.clear()
            self.dirty = False
            self._closed = True

    def __enter__(self) -> VaultSession:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __len__(self) -> int:
        return len(self._records)


# ============================================================================
#  VaultStore
# ============================================================================
class VaultStore:
    """Owns one encrypted vault file and at most one unlocked session."""

    def __init__(
        self,
        vault_path: Path,
        kdf_profile: str = DEFAULT_KDF_PROFILE,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        if kdf_profile not in KDF_PROFILES:
            raise CryptoError(f"Unknown KDF profile: {kdf_profile!r}")
        self.storage = StorageBackend(vault_path)
        self.kdf_profile = kdf_profile
        self.cipher = AuthenticatedCipher()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._session: Optional[VaultSession] = None

    @property
    def vault_path(self) -> Path:
        return self.storage.vault_path

    def exists(self) -> bool:
        return self.storage.exists()

    @property
    def state(self) -> VaultState:
        if self._session is not None and not self._session.closed:
            return VaultState.UNLOCKED
        if self.exists():
            return VaultState.LOCKED
        return VaultState.UNINITIALIZED

    # ------------------------------------------------------------------
    #  Initialize
    # ------------------------------------------------------------------
    def initialize(self, password: PasswordArg) -> VaultFile:
        if self.exists():
            raise AlreadyExists(f"Vault already exists at {self.vault_path}")

        version = VERSION_FOR_PROFILE[self.kdf_profile]
        salt = KeyDerivation.new_salt()
        key = self._derive(password, self.kdf_profile, salt)
        try:
            vault_file = self._seal(key, version, salt, [])
            self.storage.write_atomic(vault_file.to_bytes(), create=True)
        finally:
            key.clear()

        logger.info("New vault created (profile '%s')", self.kdf_profile)
        return vault_file

    # ------------------------------------------------------------------
    #  Unlock
    # ------------------------------------------------------------------
    def unlock(self, password: PasswordArg) -> VaultSession:
        if self.state is VaultState.UNLOCKED:
            raise SessionActive("Vault is already unlocked; close the session first")

        data = self.storage.read()
        vault_file = VaultFile.from_bytes(data)
        self.rate_limiter.check()

        key = self._derive(password, vault_file.kdf_profile, vault_file.salt)
        try:
            plaintext = self.cipher.decrypt(
                key, vault_file.nonce, vault_file.ciphertext, vault_file.associated_data
            )
            try:
                records = codec.decode(plaintext)
            finally:
                wipe(plaintext)
        except BaseException:
            key.clear()
            raise

        self.rate_limiter.reset()
        self._session = VaultSession(
            self,
            key,
            vault_file.version,
            vault_file.salt,
            records,
            self.storage.fingerprint(data),
        )
        logger.info("Vault unlocked: %d records", len(records))
        return self._session

    # ------------------------------------------------------------------
    #  Persist
    # ------------------------------------------------------------------
    def persist(self, session: VaultSession) -> VaultFile:
        self._check_owner(session)
        session._ensure_open()

        vault_file = self._seal(session._key, session.version, session.salt, session._records)
        session.fingerprint = self.storage.write_atomic(
            vault_file.to_bytes(), expected_fingerprint=session.fingerprint
        )
        session.dirty = False
        logger.info("Vault persisted: %d records", len(session._records))
        return vault_file

    def change_password(self, session: VaultSession, new_password: PasswordArg) -> None:
        """Re-key under a fresh salt and the store's current KDF profile."""
        self._check_owner(session)
        session._ensure_open()

        version = VERSION_FOR_PROFILE[self.kdf_profile]
        salt = KeyDerivation.new_salt()
        key = self._derive(new_password, self.kdf_profile, salt)
        try:
            vault_file = self._seal(key, version, salt, session._records)
            fingerprint = self.storage.write_atomic(
                vault_file.to_bytes(), expected_fingerprint=session.fingerprint
            )
        except BaseException:
            key.clear()
            raise

        session._key.clear()
        session._key = key
        session.version = version
        session.salt = salt
        session.fingerprint = fingerprint
        session.dirty = False
        logger.info("Master password changed")

    # ------------------------------------------------------------------
    #  Close
    # ------------------------------------------------------------------
    def close(self, session: VaultSession) -> None:
        if session.closed:
            return
        try:
            session._wipe()
        finally:
            if self._session is session:
                self._session = None
        logger.info("Vault locked")

    # ------------------------------------------------------------------
    #  Helpers
    # ------------------------------------------------------------------
    def _check_owner(self, session: VaultSession) -> None:
        if session._store is not self:
            raise VaultError("Session belongs to a different vault")

    def _seal(
        self,
        key: SecureMemory,
        version: int,
        salt: bytes,
        records: List[CredentialRecord],
    ) -> VaultFile:
        plaintext = codec.encode(records)
        try:
            nonce, ciphertext = self.cipher.encrypt(
                key, plaintext, associated_data(version, salt)
            )
        finally:
            wipe(plaintext)
        return VaultFile(version=version, salt=salt, nonce=nonce, ciphertext=ciphertext)

    @staticmethod
    def _derive(password: PasswordArg, profile: str, salt: bytes) -> SecureMemory:
        kdf = KeyDerivation(profile)
        if isinstance(password, SecretSource):
            secret = password.read_password()
            try:
                return kdf.derive(secret, salt)
            finally:
                wipe(secret)
        return kdf.derive(password, salt)
