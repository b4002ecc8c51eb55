"""Secure memory management: SecureMemory and buffer wiping helpers."""

from __future__ import annotations

import ctypes
import hmac
import logging
import platform
from typing import Union

logger = logging.getLogger("hostvault.memory")

Secret = Union[bytes, bytearray, str]


def wipe(buf: bytearray | None) -> None:
    """Overwrite a mutable buffer with zero bytes in place."""
    if not buf:
        return
    buf[:] = bytes(len(buf))


# ---------------------------------------------------------------------------
#  SecureMemory
# ---------------------------------------------------------------------------
class SecureMemory:
    """Manages a bytearray in locked (non-swappable) memory, zeroed on clear."""

    def __init__(self, data: Secret):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._size = len(data)
        self._data = bytearray(data)
        self._locked = False
        self._protect_memory()

    # -- memory protection --------------------------------------------------
    def _address(self) -> int:
        return ctypes.addressof(ctypes.c_char.from_buffer(self._data))

    def _protect_memory(self) -> None:
        if self._size == 0:
            return
        try:
            address = self._address()
            if platform.system() == "Windows":
                kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
                if kernel32.VirtualLock(
                    ctypes.c_void_p(address), ctypes.c_size_t(self._size)
                ):
                    self._locked = True
            else:
                libc = ctypes.CDLL(None)
                if (
                    libc.mlock(ctypes.c_void_p(address), ctypes.c_size_t(self._size))
                    == 0
                ):
                    self._locked = True
        except Exception as exc:
            logger.debug("Memory protection unavailable: %s", exc)

    def _unlock_memory(self) -> None:
        try:
            address = self._address()
            if platform.system() == "Windows":
                k32 = ctypes.WinDLL("kernel32", use_last_error=True)
                k32.VirtualUnlock(ctypes.c_void_p(address), ctypes.c_size_t(self._size))
            else:
                libc = ctypes.CDLL(None)
                libc.munlock(ctypes.c_void_p(address), ctypes.c_size_t(self._size))
        except Exception as exc:
            logger.debug("munlock failed: %s", exc)

    # -- public API ---------------------------------------------------------
    def get_bytes(self) -> bytes:
        if self._data is None:
            raise ValueError("Memory already cleared")
        return bytes(self._data)

    def decode(self, encoding: str = "utf-8") -> str:
        return self.get_bytes().decode(encoding)

    def clear(self) -> None:
        if getattr(self, "_data", None) is None:
            return
        try:
            wipe(self._data)
            if self._locked:
                self._unlock_memory()
        finally:
            self._data = None
            self._size = 0
            self._locked = False

    @property
    def is_cleared(self) -> bool:
        return self._data is None

    @property
    def is_protected(self) -> bool:
        return self._locked

    def __len__(self) -> int:
        return self._size

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecureMemory):
            return NotImplemented
        if self._data is None or other._data is None:
            return self._data is None and other._data is None
        return hmac.compare_digest(self._data, other._data)

    __hash__ = None

    def __repr__(self) -> str:
        state = "cleared" if self._data is None else f"{self._size} bytes"
        return f"<SecureMemory {state}>"

    def __del__(self):
        self.clear()
