"""Shared test fixtures."""

from __future__ import annotations

import pytest

from hostvault.util.rate_limit import RateLimiter
from hostvault.vault.models import CredentialRecord
from hostvault.vault.store import VaultStore

MASTER = b"pw1"


@pytest.fixture
def vault_path(tmp_path):
    """Path of a vault file that does not exist yet."""
    return tmp_path / "vdata" / "vault.hv"


@pytest.fixture
def store(vault_path):
    """A compat-profile store whose rate limiter never sleeps."""
    return VaultStore(vault_path, "compat", rate_limiter=RateLimiter(max_attempts=50, delay_base=0))


@pytest.fixture
def initialized_store(store):
    store.initialize(MASTER)
    return store


@pytest.fixture
def make_record():
    def _make(name="prod", host="1.2.3.4", username="u", password="p", **kwargs):
        return CredentialRecord(
            name=name, host=host, username=username, password=password, **kwargs
        )

    return _make
