"""CredentialRecord: one SSH connection entry with wipeable password storage."""

from __future__ import annotations

import time
import unicodedata
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from hostvault.config import Config
from hostvault.errors import InvalidRecord
from hostvault.util.memory import Secret, SecureMemory, wipe


@dataclass(frozen=True)
class ConnectionDetails:
    """Short-lived view handed to a launcher; ``password`` is wiped afterwards."""

    host: str
    port: int
    username: str
    password: bytearray


class CredentialRecord:
    """An SSH credential whose password lives in SecureMemory."""

    def __init__(
        self,
        name: str,
        host: str,
        username: str,
        password: Secret | SecureMemory,
        port: int = Config.DEFAULT_PORT,
        description: Optional[str] = None,
        created: Optional[float] = None,
        modified: Optional[float] = None,
        id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ):
        self.name = _label("name", name)
        self.host = _ssh_token("host", host)
        self.username = _ssh_token("username", username)
        self.port = _port(port)
        if description is not None and not isinstance(description, str):
            raise InvalidRecord("description must be a string")
        self.description = description or None
        self.id = _record_id(id)
        self.tags = _tags(tags)

        now = time.time()
        self.created = now if created is None else float(created)
        self.modified = self.created if modified is None else float(modified)

        if isinstance(password, SecureMemory):
            self._password = password
        else:
            self._password = SecureMemory(password)

    # ------------------------------------------------------------------
    @property
    def key(self) -> str:
        """Case-insensitive identity used for uniqueness and lookup."""
        return self.name.casefold()

    @property
    def password(self) -> str:
        return self._password.decode()

    @property
    def password_secret(self) -> SecureMemory:
        return self._password

    def ssh_command(self) -> str:
        return f"ssh {self.username}@{self.host} -p {self.port}"

    @contextmanager
    def connection(self) -> Iterator[ConnectionDetails]:
        details = ConnectionDetails(
            host=self.host,
            port=self.port,
            username=self.username,
            password=bytearray(self._password.get_bytes()),
        )
        try:
            yield details
        finally:
            wipe(details.password)

    def wipe(self) -> None:
        self._password.clear()

    @property
    def is_wiped(self) -> bool:
        return self._password.is_cleared

    # ------------------------------------------------------------------
    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "description": self.description,
            "created": self.created,
            "modified": self.modified,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> CredentialRecord:
        return cls(
            name=data["name"],
            host=data["host"],
            username=data["username"],
            password=data["password"],
            port=data.get("port", Config.DEFAULT_PORT),
            description=data.get("description"),
            created=data.get("created"),
            modified=data.get("modified"),
            id=data.get("id"),
            tags=data.get("tags"),
        )

    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CredentialRecord):
            return NotImplemented
        return (
            self.id == other.id
            and self.name == other.name
            and self.host == other.host
            and self.port == other.port
            and self.username == other.username
            and self.description == other.description
            and self.created == other.created
            and self.modified == other.modified
            and self.tags == other.tags
            and self._password == other._password
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(name={self.name!r}, host={self.host!r}, "
            f"port={self.port}, username={self.username!r})"
        )


def _required(field: str, value) -> str:
    if not isinstance(value, str):
        raise InvalidRecord(f"{field} must be a string")
    value = value.strip()
    if not value:
        raise InvalidRecord(f"{field} must not be empty")
    return value


def _has_control(value: str) -> bool:
    return any(unicodedata.category(ch).startswith("C") for ch in value)


def _label(field: str, value) -> str:
    """Free-text label: inner spaces allowed, control characters not."""
    value = _required(field, value)
    if _has_control(value):
        raise InvalidRecord(f"{field} must not contain control characters")
    return value


def _ssh_token(field: str, value) -> str:
    """A single ssh argument and ssh_config value."""
    value = _required(field, value)
    if _has_control(value) or any(ch.isspace() for ch in value):
        raise InvalidRecord(f"{field} must not contain whitespace or control characters")
    if value.startswith("-"):
        raise InvalidRecord(f"{field} must not start with '-'")
    return value


def _record_id(value) -> str:
    if value is None:
        return str(uuid.uuid4())
    if not isinstance(value, str):
        raise InvalidRecord("id must be a string")
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise InvalidRecord(f"id is not a UUID: {value!r}") from None


def _tags(values) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise InvalidRecord("tags must be a list of strings")
    tags: List[str] = []
    for value in values:
        tag = _label("tag", value)
        if tag.casefold() not in (t.casefold() for t in tags):
            tags.append(tag)
    return tags


def _port(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRecord("port must be an integer")
    if not 1 <= value <= 65535:
        raise InvalidRecord(f"port out of range: {value}")
    return value
