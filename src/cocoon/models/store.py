"""In-memory, decrypted view of the vault contents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..exceptions import CorruptedDataError, EntryNotFoundError
from .entry import EntryFields, PasswordEntry, decode_time, encode_time, utc_now


@dataclass
class PasswordStore:
    """Ordered collection of entries plus the id counter.

    Invariant: ``next_id`` is strictly greater than every id ever issued,
    so ids are never reused after deletion.

    Attributes:
        entries: Entries in insertion order
        next_id: Id assigned to the next added entry
        created_at: When the vault was first created
        last_backup: When the vault was last exported
    """

    entries: list[PasswordEntry] = field(default_factory=list)
    next_id: int = 1
    created_at: datetime = field(default_factory=utc_now)
    last_backup: Optional[datetime] = None

    def __post_init__(self) -> None:
        highest = max((e.id for e in self.entries), default=0)
        if self.next_id <= highest:
            self.next_id = highest + 1

    def find(self, entry_id: int) -> PasswordEntry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def get(self, entry_id: int) -> PasswordEntry:
        """Return the entry with ``entry_id`` or raise EntryNotFoundError."""
        entry = self.find(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def search(self, query: str) -> list[PasswordEntry]:
        """Entries matching query, in store order. Empty query returns all."""
        if not query:
            return list(self.entries)
        return [e for e in self.entries if e.matches(query)]

    def add(self, fields: EntryFields, now: datetime | None = None) -> PasswordEntry:
        entry = PasswordEntry.create(self.next_id, fields, now)
        self.entries.append(entry)
        self.next_id += 1
        return entry

    def update(self, entry_id: int, fields: EntryFields, now: datetime | None = None) -> PasswordEntry:
        entry = self.get(entry_id)
        entry.apply(fields, now)
        return entry

    def remove(self, entry_id: int) -> PasswordEntry:
        entry = self.get(entry_id)
        self.entries.remove(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "next_id": self.next_id,
            "created_at": encode_time(self.created_at),
            "last_backup": encode_time(self.last_backup) if self.last_backup else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> PasswordStore:
        """Rebuild a store from decrypted JSON.

        Raises:
            CorruptedDataError: If the document doesn't match the schema
        """
        if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
            raise CorruptedDataError("Vault data has no entry list")
        entries = [PasswordEntry.from_dict(e) for e in data["entries"]]
        try:
            next_id = int(data.get("next_id", 1))
            created = data.get("created_at")
            last_backup = data.get("last_backup")
            return cls(
                entries=entries,
                next_id=next_id,
                created_at=decode_time(created) if created else utc_now(),
                last_backup=decode_time(last_backup) if last_backup else None,
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise CorruptedDataError("Invalid vault metadata") from e
