"""Platform hardening: keep decrypted vault contents out of core dumps."""

from __future__ import annotations

import logging
import platform
import warnings

logger = logging.getLogger("hostvault.harden")


class SecurityWarning(UserWarning):
    """A protection could not be applied."""


def apply_platform_hardening() -> bool:
    """Disable core dumps on Unix. Returns True when the limit was applied."""
    if platform.system() not in ("Linux", "Darwin"):
        return False
    try:
        import resource

        resource.setrlimit(resource.RLIMIT_CORE, (0, 0))
        logger.debug("Core dumps disabled")
        return True
    except (ImportError, ValueError, OSError) as exc:
        logger.error("Error applying Unix protections: %s", exc)
        warnings.warn(SecurityWarning(f"Core dumps could not be disabled: {exc}"))
        return False


def validate_system_requirements(profile_memory_kib: int) -> None:
    """Raise SystemError when free RAM cannot hold one KDF evaluation."""
    import psutil

    avail = psutil.virtual_memory().available
    needed = profile_memory_kib * 1024
    if avail < needed:
        raise SystemError(
            f"Insufficient RAM: {avail / 1024**2:.0f} MiB free, "
            f"{needed / 1024**2:.0f} MiB needed for key derivation."
        )
