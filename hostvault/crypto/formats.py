"""Vault file layout, protocol constants, and format-version registry."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from hostvault.errors import CorruptVault, IntegrityFailure

# ============================================================================
#  Protocol constants
# ============================================================================
SALT_SIZE = 32  # written salts; readers accept >= MIN_SALT_SIZE
MIN_SALT_SIZE = 16
MAX_SALT_SIZE = 255  # salt_len is a single byte
NONCE_SIZE = 12  # 96 bits (ChaCha20-Poly1305)
KEY_SIZE = 32  # 256 bits
TAG_SIZE = 16  # 128 bits

#  version(1) + salt_len(1)
PREFIX_FMT = ">BB"
PREFIX_SIZE = struct.calcsize(PREFIX_FMT)  # 2

# Format version -> KDF profile used to derive the key for that file.
FORMAT_VERSIONS = {
    1: "compat",
    2: "balanced",
    3: "high",
}
VERSION_FOR_PROFILE = {profile: version for version, profile in FORMAT_VERSIONS.items()}


# ============================================================================
#  VaultFile
# ============================================================================
@dataclass(frozen=True)
class VaultFile:
    """The persisted, encrypted form of a vault.

    ``[version:u8][salt_len:u8][salt][nonce:12][ciphertext_and_tag]``
    """

    version: int
    salt: bytes
    nonce: bytes
    ciphertext: bytes

    @property
    def kdf_profile(self) -> str:
        return FORMAT_VERSIONS[self.version]

    @property
    def associated_data(self) -> bytes:
        return associated_data(self.version, self.salt)

    def header_bytes(self) -> bytes:
        return build_header(self.version, self.salt, self.nonce)

    def to_bytes(self) -> bytes:
        return self.header_bytes() + self.ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> VaultFile:
        """Split *data* into its parts.

        An unknown version is :class:`CorruptVault`. A salt length or file
        length that cannot be a sealed vault is :class:`IntegrityFailure`,
        the same error a failed tag check gives.
        """
        if len(data) < PREFIX_SIZE:
            raise IntegrityFailure()
        version, salt_len = struct.unpack(PREFIX_FMT, data[:PREFIX_SIZE])
        if version not in FORMAT_VERSIONS:
            raise CorruptVault(f"Unsupported vault version: {version}")

        salt_end = PREFIX_SIZE + salt_len
        nonce_end = salt_end + NONCE_SIZE
        if salt_len < MIN_SALT_SIZE or len(data) < nonce_end + TAG_SIZE:
            raise IntegrityFailure()

        return cls(
            version=version,
            salt=bytes(data[PREFIX_SIZE:salt_end]),
            nonce=bytes(data[salt_end:nonce_end]),
            ciphertext=bytes(data[nonce_end:]),
        )


def build_header(version: int, salt: bytes, nonce: bytes) -> bytes:
    if not MIN_SALT_SIZE <= len(salt) <= MAX_SALT_SIZE:
        raise ValueError(f"Invalid salt length: {len(salt)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Invalid nonce length: {len(nonce)}")
    return struct.pack(PREFIX_FMT, version, len(salt)) + salt + nonce


def associated_data(version: int, salt: bytes) -> bytes:
    """AEAD associated data: the header up to (not including) the nonce."""
    return struct.pack(PREFIX_FMT, version, len(salt)) + salt
