"""Master password sources injected into VaultStore.initialize / unlock."""

from __future__ import annotations

import os
from typing import Protocol, runtime_checkable

import click

from hostvault.config import Config
from hostvault.util.memory import Secret


@runtime_checkable
class SecretSource(Protocol):
    """Supplies a fresh master password buffer; the consumer wipes it."""

    def read_password(self) -> bytearray: ...


class StaticSecretSource:
    """In-memory password, for automation and tests."""

    def __init__(self, password: Secret):
        if isinstance(password, str):
            password = password.encode("utf-8")
        self._password = bytearray(password)

    def read_password(self) -> bytearray:
        return bytearray(self._password)


class EnvSecretSource:
    """Reads the master password from ``$HOSTVAULT_PASSWORD``."""

    def __init__(self, variable: str = Config.PASSWORD_ENV):
        self.variable = variable

    def available(self) -> bool:
        return self.variable in os.environ

    def read_password(self) -> bytearray:
        value = os.environ.get(self.variable)
        if value is None:
            raise click.UsageError(f"${self.variable} is not set")
        return bytearray(value.encode("utf-8"))


class PromptSecretSource:
    """Hidden terminal prompt, optionally asking twice."""

    def __init__(self, prompt: str = "Master password", confirm: bool = False):
        self.prompt = prompt
        self.confirm = confirm

    def read_password(self) -> bytearray:
        value = click.prompt(
            self.prompt, hide_input=True, confirmation_prompt=self.confirm
        )
        return bytearray(value.encode("utf-8"))
