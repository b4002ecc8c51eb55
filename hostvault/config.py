"""Centralised configuration, KDF profiles, and config.ini I/O."""

from __future__ import annotations

import configparser
import logging
import os
import secrets
import tempfile
import time
from pathlib import Path

import psutil

logger = logging.getLogger("hostvault.config")


# ============================================================================
#  KDF profiles  (compat / balanced / high)
# ============================================================================
# Parallelism is pinned per profile: the vault file records only the profile
# (through its format version), so every host must derive the same key.
KDF_PROFILES = {
    "compat": {
        "time_cost": 3,
        "memory_cost": 65_536,  # 64 MiB
        "parallelism": 2,
    },
    "balanced": {
        "time_cost": 4,
        "memory_cost": 262_144,  # 256 MiB
        "parallelism": 4,
    },
    "high": {
        "time_cost": 6,
        "memory_cost": 524_288,  # 512 MiB
        "parallelism": 8,
    },
}

DEFAULT_KDF_PROFILE = "compat"


# ============================================================================
#  Config class
# ============================================================================
class Config:
    """Centralised settings."""

    # Records
    DEFAULT_PORT = 22

    # Security
    MAX_VAULT_SIZE = 10 * 1024 * 1024  # 10 MB
    MIN_SALT_SIZE = 16
    SALT_SIZE = 32
    MAX_UNLOCK_ATTEMPTS = 5
    UNLOCK_DELAY_BASE = 2  # seconds

    # Environment
    HOME_ENV = "HOSTVAULT_HOME"
    PASSWORD_ENV = "HOSTVAULT_PASSWORD"

    # ------------------------------------------------------------------
    #  KDF helpers
    # ------------------------------------------------------------------
    @staticmethod
    def get_kdf_profile(data_dir: Path | None = None) -> str:
        """Read the KDF profile name from config.ini, falling back to compat."""
        if data_dir is None:
            from hostvault.paths import get_data_dir

            data_dir = get_data_dir()

        config_path = data_dir / "config.ini"
        if not config_path.exists():
            return DEFAULT_KDF_PROFILE
        cfg = configparser.ConfigParser()
        try:
            cfg.read(config_path)
        except configparser.Error as exc:
            logger.warning("Unreadable config.ini, using '%s': %s", DEFAULT_KDF_PROFILE, exc)
            return DEFAULT_KDF_PROFILE

        name = cfg.get("kdf", "profile", fallback=DEFAULT_KDF_PROFILE).strip().lower()
        if name not in KDF_PROFILES:
            logger.warning("Unknown KDF profile '%s', using '%s'", name, DEFAULT_KDF_PROFILE)
            return DEFAULT_KDF_PROFILE
        return name

    @staticmethod
    def calibrate_kdf(data_dir: Path, target_ms: int = 1000) -> str:
        """Select the strongest KDF profile the hardware runs within *target_ms*."""
        import argon2
        import argon2.low_level as low

        ram_cap = psutil.virtual_memory().total * 3 // 4

        salt = secrets.token_bytes(Config.SALT_SIZE)
        pw = b"benchmark"

        best_profile = DEFAULT_KDF_PROFILE
        for name in ("compat", "balanced", "high"):
            profile = KDF_PROFILES[name]
            if profile["memory_cost"] * 1024 > ram_cap:
                logger.info("Skipping profile '%s': exceeds RAM cap", name)
                continue
            try:
                t0 = time.perf_counter()
                low.hash_secret_raw(
                    pw,
                    salt,
                    time_cost=profile["time_cost"],
                    memory_cost=profile["memory_cost"],
                    parallelism=profile["parallelism"],
                    hash_len=32,
                    type=argon2.Type.ID,
                )
                dt = (time.perf_counter() - t0) * 1_000
            except (MemoryError, OSError):
                logger.warning("Profile '%s' failed (not enough RAM)", name)
                break

            logger.info(
                "Profile '%s': t=%d m=%d KiB p=%d  (%.0f ms)",
                name,
                profile["time_cost"],
                profile["memory_cost"],
                profile["parallelism"],
                dt,
            )
            if name != DEFAULT_KDF_PROFILE and dt > target_ms:
                break
            best_profile = name

        _write_config(data_dir, best_profile)
        logger.info("KDF calibrated: selected profile '%s'", best_profile)
        return best_profile

    @staticmethod
    def config_exists(data_dir: Path) -> bool:
        return (data_dir / "config.ini").exists()


# ============================================================================
#  Atomic config writer
# ============================================================================
def _write_config(data_dir: Path, profile: str) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    if os.name != "nt":
        try:
            os.chmod(data_dir, 0o700)
        except OSError:
            pass

    config_path = data_dir / "config.ini"
    cfg = configparser.ConfigParser()
    cfg["kdf"] = {"profile": profile}

    fd = tempfile.NamedTemporaryFile(
        mode="w", dir=data_dir, prefix="cfg_tmp_", suffix=".ini", delete=False
    )
    try:
        cfg.write(fd)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        tmp = Path(fd.name)
        if os.name != "nt":
            os.chmod(tmp, 0o600)
        tmp.replace(config_path)
    except BaseException:
        fd.close()
        try:
            Path(fd.name).unlink(missing_ok=True)
        except OSError:
            pass
        raise
