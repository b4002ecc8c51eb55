"""Tests for KDF profile configuration."""

from __future__ import annotations

import pytest

from hostvault.config import DEFAULT_KDF_PROFILE, Config, _write_config


class TestKdfProfile:
    def test_default_without_config(self, tmp_path):
        assert Config.get_kdf_profile(tmp_path) == DEFAULT_KDF_PROFILE
        assert not Config.config_exists(tmp_path)

    def test_reads_written_profile(self, tmp_path):
        _write_config(tmp_path, "balanced")
        assert Config.config_exists(tmp_path)
        assert Config.get_kdf_profile(tmp_path) == "balanced"

    def test_unknown_profile_falls_back(self, tmp_path):
        (tmp_path / "config.ini").write_text("[kdf]\nprofile = turbo\n")
        assert Config.get_kdf_profile(tmp_path) == DEFAULT_KDF_PROFILE

    def test_garbage_config_falls_back(self, tmp_path):
        (tmp_path / "config.ini").write_text("no section header\n")
        assert Config.get_kdf_profile(tmp_path) == DEFAULT_KDF_PROFILE


class TestCalibrate:
    def test_picks_fastest_within_target(self, tmp_path, monkeypatch):
        import argon2.low_level

        monkeypatch.setattr(argon2.low_level, "hash_secret_raw", lambda *a, **kw: b"\x00" * 32)
        assert Config.calibrate_kdf(tmp_path, target_ms=10_000) in ("compat", "balanced", "high")
        assert Config.config_exists(tmp_path)

    def test_slow_hardware_keeps_compat(self, tmp_path, monkeypatch):
        import argon2.low_level

        ticks = iter(range(0, 1000, 5))
        monkeypatch.setattr("hostvault.config.time.perf_counter", lambda: next(ticks))
        monkeypatch.setattr(argon2.low_level, "hash_secret_raw", lambda *a, **kw: b"\x00" * 32)
        assert Config.calibrate_kdf(tmp_path, target_ms=1) == "compat"
        assert Config.get_kdf_profile(tmp_path) == "compat"
