"""CredentialIndex: lookup and ranked substring search over a record list."""

from __future__ import annotations

from typing import List, Sequence

from hostvault.errors import NotFound
from hostvault.vault.models import CredentialRecord

# id prefixes shorter than this never match
MIN_ID_PREFIX = 4


class CredentialIndex:
    """Read-only view over records; recomputed on every query."""

    def __init__(self, records: Sequence[CredentialRecord]):
        self._records = records

    def lookup(self, name_or_id: str) -> CredentialRecord:
        """Exact name (ignoring case), else a unique prefix of the record id."""
        wanted = name_or_id.strip().casefold()
        for record in self._records:
            if record.key == wanted:
                return record

        if len(wanted) >= MIN_ID_PREFIX:
            matches = [r for r in self._records if r.id.startswith(wanted)]
            if len(matches) == 1:
                return matches[0]
            if matches:
                raise NotFound(f"Id prefix '{name_or_id}' matches {len(matches)} servers")
        raise NotFound(f"No server named '{name_or_id}'")

    def search(self, query: str) -> List[CredentialRecord]:
        """Name matches first, then host/description/tag matches, each in insertion order."""
        if not query:
            return list(self._records)
        needle = query.casefold()

        by_name: List[CredentialRecord] = []
        by_other: List[CredentialRecord] = []
        for record in self._records:
            if needle in record.name.casefold():
                by_name.append(record)
            elif any(needle in field.casefold() for field in _secondary_fields(record)):
                by_other.append(record)
        return by_name + by_other

    def __len__(self) -> int:
        return len(self._records)


def _secondary_fields(record: CredentialRecord) -> List[str]:
    return [record.host, record.description or "", *record.tags]
