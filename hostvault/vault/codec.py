"""VaultCodec: record list <-> plaintext JSON document."""

from __future__ import annotations

import json
import logging
from typing import Iterable, List

from hostvault.errors import CorruptVault, InvalidRecord
from hostvault.vault.models import CredentialRecord

logger = logging.getLogger("hostvault.codec")

CODEC_FORMAT = 1

_STR_FIELDS = ("id", "name", "host", "username", "password")
_OPTIONAL_STR_FIELDS = ("description",)
_NUMBER_FIELDS = ("created", "modified")


def encode(records: Iterable[CredentialRecord]) -> bytearray:
    """Serialise *records* in order. The caller wipes the returned buffer."""
    document = {
        "format": CODEC_FORMAT,
        "records": [r.to_dict() for r in records],
    }
    return bytearray(json.dumps(document, ensure_ascii=False).encode("utf-8"))


def decode(data: bytes | bytearray) -> List[CredentialRecord]:
    try:
        document = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptVault(f"Vault content is not valid JSON: {exc.__class__.__name__}") from None

    if not isinstance(document, dict):
        raise CorruptVault("Vault content must be an object")
    fmt = document.get("format")
    if fmt != CODEC_FORMAT:
        raise CorruptVault(f"Unknown vault content format: {fmt!r}")
    raw_records = document.get("records")
    if not isinstance(raw_records, list):
        raise CorruptVault("Vault content has no record list")

    records: List[CredentialRecord] = []
    seen = set()
    seen_ids = set()
    try:
        for position, raw in enumerate(raw_records):
            _check_schema(position, raw)
            record = CredentialRecord.from_dict(raw)
            records.append(record)
            if record.key in seen:
                raise CorruptVault(f"Duplicate record name at position {position}")
            if record.id in seen_ids:
                raise CorruptVault(f"Duplicate record id at position {position}")
            seen.add(record.key)
            seen_ids.add(record.id)
    except (CorruptVault, InvalidRecord) as exc:
        for record in records:
            record.wipe()
        if isinstance(exc, CorruptVault):
            raise
        raise CorruptVault(f"Invalid record: {exc}") from None

    logger.debug("Decoded %d records", len(records))
    return records


def _check_schema(position: int, raw) -> None:
    if not isinstance(raw, dict):
        raise CorruptVault(f"Record {position} is not an object")
    for field in _STR_FIELDS:
        if not isinstance(raw.get(field), str):
            raise CorruptVault(f"Record {position}: field '{field}' missing or not a string")
    for field in _OPTIONAL_STR_FIELDS:
        if raw.get(field) is not None and not isinstance(raw[field], str):
            raise CorruptVault(f"Record {position}: field '{field}' is not a string")
    port = raw.get("port")
    if isinstance(port, bool) or not isinstance(port, int):
        raise CorruptVault(f"Record {position}: field 'port' missing or not an integer")
    for field in _NUMBER_FIELDS:
        value = raw.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CorruptVault(f"Record {position}: field '{field}' missing or not a number")
    tags = raw.get("tags")
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise CorruptVault(f"Record {position}: field 'tags' missing or not a list of strings")
