"""KeyDerivation (Argon2id) and AuthenticatedCipher (ChaCha20-Poly1305)."""

from __future__ import annotations

import logging
import secrets
from typing import Tuple, Union

import argon2
import argon2.low_level
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from hostvault.config import DEFAULT_KDF_PROFILE, KDF_PROFILES
from hostvault.crypto.formats import (
    KEY_SIZE,
    MAX_SALT_SIZE,
    MIN_SALT_SIZE,
    NONCE_SIZE,
    SALT_SIZE,
    TAG_SIZE,
)
from hostvault.errors import CryptoError, IntegrityFailure
from hostvault.util.memory import SecureMemory

logger = logging.getLogger("hostvault.crypto")

PasswordInput = Union[SecureMemory, bytes, bytearray]


# ============================================================================
#  KeyDerivation
# ============================================================================
class KeyDerivation:
    """Argon2id password-based key derivation."""

    def __init__(self, profile: str = DEFAULT_KDF_PROFILE):
        if profile not in KDF_PROFILES:
            raise CryptoError(f"Unknown KDF profile: {profile!r}")
        params = KDF_PROFILES[profile]

        self.profile = profile
        self.time_cost = params["time_cost"]
        self.memory_cost = params["memory_cost"]
        self.parallelism = params["parallelism"]

        logger.debug(
            "KeyDerivation: Argon2id(t=%d, m=%d KiB, p=%d)",
            self.time_cost,
            self.memory_cost,
            self.parallelism,
        )

    @staticmethod
    def new_salt() -> bytes:
        return secrets.token_bytes(SALT_SIZE)

    def derive(self, password: PasswordInput, salt: bytes) -> SecureMemory:
        """Derive the 32-byte vault key.

        The password buffer stays owned by the caller, who wipes it.
        """
        if not MIN_SALT_SIZE <= len(salt) <= MAX_SALT_SIZE:
            raise CryptoError(
                f"Salt must be {MIN_SALT_SIZE}-{MAX_SALT_SIZE} bytes, got {len(salt)}"
            )

        if isinstance(password, SecureMemory):
            secret = password.get_bytes()
        else:
            secret = bytes(password)

        try:
            raw = argon2.low_level.hash_secret_raw(
                secret,
                bytes(salt),
                time_cost=self.time_cost,
                memory_cost=self.memory_cost,
                parallelism=self.parallelism,
                hash_len=KEY_SIZE,
                type=argon2.Type.ID,
            )
        except MemoryError:
            raise CryptoError(
                f"Not enough RAM for KDF ({self.memory_cost // 1024} MiB required). "
                "Try a lower KDF profile."
            ) from None
        finally:
            del secret

        key = SecureMemory(raw)
        del raw
        return key


# ============================================================================
#  AuthenticatedCipher
# ============================================================================
class AuthenticatedCipher:
    """ChaCha20-Poly1305 AEAD: 256-bit key, 96-bit nonce, 128-bit tag."""

    @staticmethod
    def _cipher(key: SecureMemory) -> ChaCha20Poly1305:
        if len(key) != KEY_SIZE:
            raise CryptoError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
        return ChaCha20Poly1305(key.get_bytes())

    def encrypt(
        self, key: SecureMemory, plaintext: bytes, associated_data: bytes = b""
    ) -> Tuple[bytes, bytes]:
        """Encrypt under a nonce drawn here; returns ``(nonce, ciphertext_and_tag)``."""
        cipher = self._cipher(key)
        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = cipher.encrypt(nonce, bytes(plaintext), associated_data)
        return nonce, ciphertext

    def decrypt(
        self,
        key: SecureMemory,
        nonce: bytes,
        ciphertext: bytes,
        associated_data: bytes = b"",
    ) -> bytearray:
        cipher = self._cipher(key)
        if len(nonce) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
            raise IntegrityFailure()
        try:
            plaintext = cipher.decrypt(nonce, ciphertext, associated_data)
        except InvalidTag:
            raise IntegrityFailure() from None
        out = bytearray(plaintext)
        del plaintext
        return out
