"""Exception hierarchy shared by the vault engine and its collaborators."""

from __future__ import annotations


class VaultError(Exception):
    """Base class for every error raised by hostvault."""


# ---------------------------------------------------------------------------
#  Cryptography
# ---------------------------------------------------------------------------
class CryptoError(VaultError):
    """Programmer error: malformed salt, wrong key length, KDF failure."""


class AuthError(VaultError):
    """Authentication of vault content failed."""


class IntegrityFailure(AuthError):
    """Wrong master password or tampered/corrupted vault file.

    The two causes are deliberately indistinguishable.
    """

    def __init__(self, message: str = "Incorrect password or corrupted vault"):
        super().__init__(message)


# ---------------------------------------------------------------------------
#  Format
# ---------------------------------------------------------------------------
class FormatError(VaultError):
    """Bytes are not valid vault content."""


class CorruptVault(FormatError):
    """Schema mismatch, unknown version, or malformed field."""


# ---------------------------------------------------------------------------
#  Storage / lifecycle
# ---------------------------------------------------------------------------
class ConflictError(VaultError):
    """The vault file changed on disk since it was unlocked."""

    def __init__(
        self,
        message: str = "Vault was modified by another process; unlock again and retry",
    ):
        super().__init__(message)


class StorageError(VaultError, OSError):
    """Filesystem failure while reading or writing the vault."""


class AlreadyExists(VaultError):
    """A vault file is already present."""


class VaultNotFound(VaultError):
    """No vault file at the configured path."""


class VaultLocked(VaultError):
    """Operation attempted on a closed session."""


class SessionActive(VaultError):
    """The store already has an unlocked session."""


class TooManyAttempts(VaultError):
    """Unlock throttling exhausted."""


# ---------------------------------------------------------------------------
#  Records
# ---------------------------------------------------------------------------
class DuplicateName(VaultError, ValueError):
    """A record with the same (case-insensitive) name already exists."""


class NotFound(VaultError, LookupError):
    """No record with the requested name."""


class InvalidRecord(VaultError, ValueError):
    """A record field is empty or out of range."""


# ---------------------------------------------------------------------------
#  Launcher
# ---------------------------------------------------------------------------
class LauncherUnavailable(VaultError):
    """The external SSH helper programs are not installed."""
