"""HostVault cryptographic modules."""

from hostvault.crypto.engine import AuthenticatedCipher, KeyDerivation
from hostvault.crypto.formats import (
    FORMAT_VERSIONS,
    VaultFile,
)

__all__ = [
    "AuthenticatedCipher",
    "KeyDerivation",
    "FORMAT_VERSIONS",
    "VaultFile",
]
