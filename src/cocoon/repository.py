"""Entry operations against the encrypted vault.

Every operation runs the full cycle under one lock:

    session key -> load container -> decrypt -> mutate -> encrypt -> save

No decrypted PasswordStore outlives a call. Saves always go through
crypto.encrypt, which samples a fresh nonce, while the container's salt
and iterations are carried forward unchanged.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from .models import EntryFields, PasswordEntry, PasswordStore
from .models.entry import utc_now
from .parsing.container import EncryptedPasswordStore
from .security.crypto import decrypt_json, encode_field, encrypt_json
from .security.memory import SecureBytes
from .session import SessionGuard
from .storage import VaultStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntryRepository:
    """Search, add, update, delete and get entries in the vault.

    All methods require an unlocked session and raise the session's
    AuthenticationError subclasses otherwise. Concurrent calls on one
    repository are serialized so read-modify-write cycles never interleave.
    """

    def __init__(self, session: SessionGuard, store: VaultStore) -> None:
        self._session = session
        self._store = store
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing every read-modify-write cycle on the vault."""
        return self._lock

    def _now(self) -> datetime:
        return self._session.clock.now().replace(microsecond=0)

    # --- Container helpers ---

    def _read(self, key: SecureBytes) -> tuple[EncryptedPasswordStore, PasswordStore]:
        container = self._store.load()
        data = decrypt_json(container.encrypted_data, container.nonce, key)
        return container, PasswordStore.from_dict(data)

    def _write(
        self, container: EncryptedPasswordStore, store: PasswordStore, key: SecureBytes
    ) -> None:
        encrypted_data, nonce = encrypt_json(store.to_dict(), key)
        self._store.save(container.with_payload(encrypted_data, nonce))

    def _run(self, operation: Callable[[PasswordStore], T], *, persist: bool) -> T:
        with self._lock:
            with self._session.require_key() as key:
                container, store = self._read(key)
                result = operation(store)
                if persist:
                    self._write(container, store, key)
                return result

    # --- Setup and bulk access ---

    def initialize(self, key: SecureBytes, salt: bytes, iterations: int) -> None:
        """Write a fresh, empty encrypted store.

        Called during master password setup, before any session exists.
        """
        with self._lock:
            store = PasswordStore(created_at=utc_now())
            encrypted_data, nonce = encrypt_json(store.to_dict(), key)
            self._store.save(
                EncryptedPasswordStore(
                    encrypted_data=encrypted_data,
                    nonce=nonce,
                    salt=encode_field(salt),
                    iterations=iterations,
                )
            )
        logger.info("Initialized empty vault at %s", self._store.vault_path)

    def load_store(self) -> PasswordStore:
        """Decrypt and return the whole store (no persistence)."""
        return self._run(lambda store: store, persist=False)

    def modify_store(self, operation: Callable[[PasswordStore], T]) -> T:
        """Apply an arbitrary mutation to the store and persist it."""
        return self._run(operation, persist=True)

    def reencrypt(
        self, old_key: SecureBytes, new_key: SecureBytes, salt: bytes, iterations: int
    ) -> None:
        """Re-encrypt the container under a new key and salt."""
        with self._lock:
            container, store = self._read(old_key)
            container = EncryptedPasswordStore(
                encrypted_data=container.encrypted_data,
                nonce=container.nonce,
                salt=encode_field(salt),
                iterations=iterations,
                version=container.version,
            )
            self._write(container, store, new_key)

    # --- Entry operations ---

    def search(self, query: str) -> list[PasswordEntry]:
        """Case-insensitive substring search over title, username and URL."""
        return self._run(lambda store: store.search(query), persist=False)

    def get(self, entry_id: int) -> PasswordEntry:
        """Raises EntryNotFoundError if absent."""
        return self._run(lambda store: store.get(entry_id), persist=False)

    def count(self) -> int:
        return self._run(lambda store: len(store.entries), persist=False)

    def add(self, fields: EntryFields) -> int:
        """Add an entry and return its newly assigned id."""
        entry = self._run(lambda store: store.add(fields, self._now()), persist=True)
        logger.debug("Added entry %d", entry.id)
        return entry.id

    def update(self, entry_id: int, fields: EntryFields) -> None:
        """Replace an entry's fields. Raises EntryNotFoundError if absent."""
        self._run(lambda store: store.update(entry_id, fields, self._now()), persist=True)
        logger.debug("Updated entry %d", entry_id)

    def delete(self, entry_id: int) -> None:
        """Remove an entry. Raises EntryNotFoundError if absent."""
        self._run(lambda store: store.remove(entry_id), persist=True)
        logger.debug("Deleted entry %d", entry_id)
