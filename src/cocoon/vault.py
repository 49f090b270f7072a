"""High-level vault API.

This module provides the operation surface used by UI and command layers:
- Master password setup, authentication, locking and rotation
- Entry search and CRUD against the encrypted store
- Password generation and strength scoring
- Encrypted export and import
- Clipboard copy and auto-type hand-off to platform collaborators
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import TracebackType
from typing import Any

from .capabilities import AutoTypeProvider, ClipboardGuard, ClipboardProvider, autotype_entry
from .config import VaultSettings
from .exceptions import StorageError, ValidationError
from .models import EntryFields, PasswordEntry, PasswordStore
from .parsing.container import ExportDocument
from .repository import EntryRepository
from .scheduler import Clock, Scheduler, SystemClock, ThreadScheduler
from .security.crypto import decode_field, decrypt_json, encode_field, encrypt_json, secure_random_bytes
from .security.generator import CharacterClass, generate_password
from .security.kdf import (
    SALT_LENGTH,
    Argon2Config,
    check_master_password,
    config_from_verifier,
    derive_key,
    derive_key_from_verifier,
    hash_master_password,
    salt_from_verifier,
)
from .security.strength import password_strength
from .session import IdleSweeper, LockListener, LockReason, SessionGuard
from .storage import VaultStore

logger = logging.getLogger(__name__)

# Exports carry no KDF parameters, so every installation derives export
# keys with the same fixed cost.
EXPORT_ARGON2 = Argon2Config.standard()


class Vault:
    """A single user's password vault.

    Example usage:
        with Vault(VaultSettings()) as vault:
            if not vault.has_master_password():
                vault.setup_master_password("correct horse battery")
            vault.authenticate("correct horse battery")
            entry_id = vault.add(title="GitHub", username="me", password="s3cret")
            hits = vault.search("git")
    """

    def __init__(
        self,
        settings: VaultSettings | None = None,
        *,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
        start_sweeper: bool = True,
    ) -> None:
        """Initialize the vault.

        Args:
            settings: Vault settings (defaults to VaultSettings())
            clock: Time source (defaults to the system clock)
            scheduler: Runs the idle sweep and clipboard clearing (defaults
                to a ThreadScheduler owned and shut down by this vault)
            start_sweeper: Start the periodic idle-timeout sweep immediately
        """
        self._settings = settings or VaultSettings()
        self._owns_scheduler = scheduler is None
        self._scheduler: Scheduler = scheduler or ThreadScheduler()
        self._store = VaultStore(self._settings.data_dir)
        self._session = SessionGuard.from_settings(
            self._settings, self._store, clock or SystemClock()
        )
        self._repository = EntryRepository(self._session, self._store)
        self._sweeper = IdleSweeper(
            self._session, self._scheduler, self._settings.sweep_interval
        )
        self._clipboard_guard: ClipboardGuard | None = None
        if start_sweeper:
            self._sweeper.start()

    def __enter__(self) -> Vault:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Lock the session, clear any copied secret and stop background tasks."""
        self._sweeper.stop()
        self._session.lock(LockReason.CLOSED)
        if self._clipboard_guard is not None:
            self._clipboard_guard.clear_now()
        if self._owns_scheduler:
            self._scheduler.shutdown()

    @property
    def settings(self) -> VaultSettings:
        return self._settings

    @property
    def session(self) -> SessionGuard:
        return self._session

    @property
    def store(self) -> VaultStore:
        return self._store

    @property
    def repository(self) -> EntryRepository:
        return self._repository

    # --- Master password and session ---

    def has_master_password(self) -> bool:
        return self._store.has_verifier()

    def setup_master_password(self, password: str) -> None:
        """Create the master verifier and an empty encrypted vault.

        Raises:
            WeakMasterPasswordError: Password shorter than 8 characters
            ValidationError: A master password (or orphaned vault data)
                already exists
        """
        check_master_password(password)
        if self._store.has_verifier():
            raise ValidationError("Master password is already set up")
        if self._store.exists():
            raise ValidationError(
                f"Vault data in {self._store.data_dir} has no master verifier "
                "and cannot be unlocked; remove it with VaultStore.delete() to start over"
            )

        verifier = hash_master_password(password, self._settings.argon2)
        params = config_from_verifier(verifier)
        with derive_key_from_verifier(password, verifier) as key:
            self._repository.initialize(key, salt_from_verifier(verifier), params.iterations)
        try:
            self._store.save_verifier(verifier)
        except StorageError:
            self._store.delete()
            raise
        logger.info("Master password set up in %s", self._store.data_dir)

    def authenticate(self, password: str) -> bool:
        """Unlock the session. See SessionGuard.authenticate."""
        return self._session.authenticate(password)

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated()

    def lock_session(self) -> None:
        self._session.lock(LockReason.MANUAL)

    def add_lock_listener(self, listener: LockListener) -> None:
        """Be notified (e.g. to reset the UI) whenever the session ends."""
        self._session.add_lock_listener(listener)

    def change_master_password(self, current_password: str, new_password: str) -> None:
        """Rotate the master verifier and re-encrypt the vault.

        The current password goes through authenticate(), so wrong guesses
        count toward lockout. The container is written before the new
        verifier; if saving the verifier fails, the container is rolled back.
        """
        check_master_password(new_password)
        with self._repository.lock:
            self._session.authenticate(current_password)
            old_verifier = self._store.load_verifier()
            old_salt = salt_from_verifier(old_verifier)
            old_iterations = config_from_verifier(old_verifier).iterations

            new_verifier = hash_master_password(new_password, self._settings.argon2)
            new_salt = salt_from_verifier(new_verifier)
            new_iterations = config_from_verifier(new_verifier).iterations
            with self._session.require_key() as old_key, derive_key_from_verifier(
                new_password, new_verifier
            ) as new_key:
                self._repository.reencrypt(old_key, new_key, new_salt, new_iterations)
                try:
                    self._store.save_verifier(new_verifier)
                except StorageError:
                    logger.error("Saving new verifier failed, restoring previous key")
                    self._repository.reencrypt(new_key, old_key, old_salt, old_iterations)
                    raise
                self._session.replace_key(new_key)
        logger.info("Master password changed")

    # --- Entries ---

    def search(self, query: str = "") -> list[PasswordEntry]:
        return self._repository.search(query)

    def get(self, entry_id: int) -> PasswordEntry:
        return self._repository.get(entry_id)

    def add(self, fields: EntryFields | None = None, /, **kwargs: Any) -> int:
        """Add an entry from EntryFields or keyword arguments; returns its id."""
        return self._repository.add(fields or EntryFields(**kwargs))

    def update(self, entry_id: int, fields: EntryFields | None = None, /, **kwargs: Any) -> None:
        self._repository.update(entry_id, fields or EntryFields(**kwargs))

    def delete(self, entry_id: int) -> None:
        self._repository.delete(entry_id)

    # --- Passwords ---

    def generate_password(
        self,
        length: int = 16,
        classes: CharacterClass | Iterable[CharacterClass] = CharacterClass.all(),
    ) -> str:
        return generate_password(length, classes)

    def strength(self, password: str) -> int:
        return password_strength(password)

    # --- Export / import ---

    def export_vault(self, export_password: str) -> str:
        """Export all entries encrypted under ``export_password``.

        The export uses its own salt, nonce and key, so it can be
        decrypted without the master password. Records last_backup in
        the live vault.

        Returns:
            Export document as a JSON string
        """
        check_master_password(export_password)
        now = self._session.clock.now()

        def _stamp(store: PasswordStore) -> dict[str, Any]:
            store.last_backup = now
            return store.to_dict()

        data = self._repository.modify_store(_stamp)
        salt = secure_random_bytes(SALT_LENGTH)
        with derive_key(export_password, salt, EXPORT_ARGON2) as key:
            encrypted_data, nonce = encrypt_json(data, key)
        logger.info("Exported %d entries", len(data["entries"]))
        return ExportDocument.create(encrypted_data, nonce, encode_field(salt)).to_json()

    def import_vault(self, payload: str, export_password: str, *, merge: bool = True) -> int:
        """Import entries from an export document.

        Imported entries always get fresh ids from this vault's counter.

        Args:
            payload: Export JSON produced by export_vault()
            export_password: Password the export was made with
            merge: Keep existing entries (True) or replace them (False)

        Returns:
            Number of entries imported

        Raises:
            FormatError: Malformed or unsupported export document
            DecodeError: A base64 field is invalid
            DecryptionError: Wrong export password or tampered export
        """
        with self._session.require_key():
            pass
        document = ExportDocument.from_json(payload)
        salt = decode_field(document.salt, "salt")
        with derive_key(export_password, salt, EXPORT_ARGON2) as key:
            imported = PasswordStore.from_dict(
                decrypt_json(document.encrypted_data, document.nonce, key)
            )
        now = self._session.clock.now().replace(microsecond=0)

        def _merge(store: PasswordStore) -> int:
            if not merge:
                store.entries.clear()
            for source in imported.entries:
                entry = store.add(source.to_fields(), now)
                entry.created_at = source.created_at
                entry.modified_at = source.modified_at
            return len(imported.entries)

        count = self._repository.modify_store(_merge)
        logger.info("Imported %d entries (merge=%s)", count, merge)
        return count

    # --- Platform hand-off ---

    def copy_password(self, entry_id: int, clipboard: ClipboardProvider) -> None:
        """Copy an entry's password; it is cleared after the configured delay."""
        entry = self.get(entry_id)
        self._guard_for(clipboard).copy(entry.password, sensitive=True)
        logger.info("Password copied for entry %d", entry_id)

    def copy_username(self, entry_id: int, clipboard: ClipboardProvider) -> None:
        entry = self.get(entry_id)
        self._guard_for(clipboard).copy(entry.username, sensitive=False)

    def autotype(self, entry_id: int, provider: AutoTypeProvider, *, submit: bool = True) -> None:
        """Type the entry's credentials into the focused application."""
        autotype_entry(self.get(entry_id), provider, submit=submit)

    def type_username(self, entry_id: int, provider: AutoTypeProvider) -> None:
        provider.type_text(self.get(entry_id).username)

    def type_password(self, entry_id: int, provider: AutoTypeProvider) -> None:
        """Type only the password, without TAB or ENTER."""
        provider.type_text(self.get(entry_id).password)
        logger.debug("Typed password for entry %d", entry_id)

    def _guard_for(self, clipboard: ClipboardProvider) -> ClipboardGuard:
        guard = self._clipboard_guard
        if guard is None or guard.clipboard is not clipboard:
            if guard is not None:
                guard.clear_now()
            guard = ClipboardGuard(
                clipboard, self._scheduler, self._settings.clipboard_clear_delay
            )
            self._clipboard_guard = guard
        return guard

    def __repr__(self) -> str:
        return f"Vault({str(self._store.data_dir)!r}, {self._session.status.value})"
