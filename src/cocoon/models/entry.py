"""Entry model for vault password entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from ..exceptions import CorruptedDataError
from ..security.strength import password_strength


def utc_now() -> datetime:
    """Current time, timezone-aware UTC, truncated to whole seconds."""
    return datetime.now(UTC).replace(microsecond=0)


def encode_time(dt: datetime) -> str:
    """Encode a datetime as ISO-8601 UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def decode_time(value: str) -> datetime:
    """Decode an ISO-8601 timestamp, accepting a trailing 'Z'."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass
class EntryFields:
    """Caller-supplied mutable fields of an entry.

    Used for both add and update; update replaces all of them.
    """

    title: str
    username: str
    password: str
    url: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class PasswordEntry:
    """A single credential stored in the vault.

    The password is only ever plaintext while the store is decrypted in
    memory.

    Attributes:
        id: Unique, monotonically assigned identifier
        title: Display name (e.g. "GitHub")
        username: Account name or email
        password: Secret value
        url: Optional site URL
        notes: Optional free-form notes
        created_at: Creation time (UTC)
        modified_at: Last modification time (UTC)
        password_strength: Derived score 0-100
    """

    id: int
    title: str
    username: str
    password: str = field(repr=False)
    url: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    modified_at: datetime = field(default_factory=utc_now)
    password_strength: int = 0

    @classmethod
    def create(cls, entry_id: int, fields: EntryFields, now: datetime | None = None) -> PasswordEntry:
        """Build a new entry, stamping timestamps and scoring the password."""
        now = now or utc_now()
        return cls(
            id=entry_id,
            title=fields.title,
            username=fields.username,
            password=fields.password,
            url=fields.url,
            notes=fields.notes,
            created_at=now,
            modified_at=now,
            password_strength=password_strength(fields.password),
        )

    def apply(self, fields: EntryFields, now: datetime | None = None) -> None:
        """Replace the mutable fields and re-stamp modified_at."""
        self.title = fields.title
        self.username = fields.username
        self.password = fields.password
        self.url = fields.url
        self.notes = fields.notes
        self.modified_at = now or utc_now()
        self.password_strength = password_strength(fields.password)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on title, username and URL."""
        needle = query.lower()
        if needle in self.title.lower() or needle in self.username.lower():
            return True
        return self.url is not None and needle in self.url.lower()

    def to_fields(self) -> EntryFields:
        return EntryFields(
            title=self.title,
            username=self.username,
            password=self.password,
            url=self.url,
            notes=self.notes,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "password": self.password,
            "url": self.url,
            "notes": self.notes,
            "created_at": encode_time(self.created_at),
            "modified_at": encode_time(self.modified_at),
            "password_strength": self.password_strength,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PasswordEntry:
        """Rebuild an entry from its serialized form.

        Entries written before modified_at/password_strength existed get
        created_at and a freshly computed score.

        Raises:
            CorruptedDataError: If required fields are missing or ill-typed
        """
        try:
            created_at = decode_time(data["created_at"])
            modified = data.get("modified_at")
            password = str(data["password"])
            strength = data.get("password_strength")
            return cls(
                id=int(data["id"]),
                title=str(data["title"]),
                username=str(data["username"]),
                password=password,
                url=data.get("url"),
                notes=data.get("notes"),
                created_at=created_at,
                modified_at=decode_time(modified) if modified else created_at,
                password_strength=(
                    int(strength) if strength is not None else password_strength(password)
                ),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CorruptedDataError("Invalid entry record in vault data") from e
