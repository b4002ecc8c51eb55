"""HostVault vault modules."""

from hostvault.vault.index import CredentialIndex
from hostvault.vault.models import ConnectionDetails, CredentialRecord
from hostvault.vault.sources import (
    EnvSecretSource,
    PromptSecretSource,
    SecretSource,
    StaticSecretSource,
)
from hostvault.vault.store import VaultSession, VaultState, VaultStore

__all__ = [
    "ConnectionDetails",
    "CredentialIndex",
    "CredentialRecord",
    "EnvSecretSource",
    "PromptSecretSource",
    "SecretSource",
    "StaticSecretSource",
    "VaultSession",
    "VaultState",
    "VaultStore",
]
