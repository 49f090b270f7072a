"""Tests for entry operations against the encrypted container."""

import json
import threading
from datetime import timedelta

import pytest

from cocoon import Vault
from cocoon.exceptions import (
    DecodeError,
    DecryptionError,
    EntryNotFoundError,
    NotAuthenticatedError,
    VaultNotFoundError,
)
from cocoon.models import EntryFields
from cocoon.security.crypto import decode_field, encode_field
from cocoon.security.kdf import salt_from_verifier
from cocoon.testing import ManualClock


def fields(title: str = "GitHub", password: str = "hunter2hunter2") -> EntryFields:
    return EntryFields(title=title, username="a@b.com", password=password, url="https://github.com")


def read_container(vault: Vault) -> dict[str, object]:
    return json.loads(vault.store.vault_path.read_text())


class TestEntryRepository:
    """Tests for EntryRepository CRUD."""

    def test_add_and_get(self, unlocked: Vault) -> None:
        repo = unlocked.repository
        entry_id = repo.add(fields())
        entry = repo.get(entry_id)
        assert entry.title == "GitHub"
        assert entry.password == "hunter2hunter2"
        assert entry.password_strength > 0

    def test_ids_monotonic(self, unlocked: Vault) -> None:
        repo = unlocked.repository
        first = repo.add(fields("one"))
        second = repo.add(fields("two"))
        repo.delete(second)
        third = repo.add(fields("three"))
        assert (first, second, third) == (1, 2, 3)
        assert repo.count() == 2

    def test_search_case_insensitive(self, unlocked: Vault) -> None:
        repo = unlocked.repository
        repo.add(fields("GitHub"))
        repo.add(EntryFields(title="Bank", username="me", password="x"))
        assert [e.title for e in repo.search("HUB")] == ["GitHub"]
        assert [e.title for e in repo.search("gIt")] == ["GitHub"]
        assert len(repo.search("")) == 2

    def test_update(self, unlocked: Vault, clock: ManualClock) -> None:
        repo = unlocked.repository
        entry_id = repo.add(fields())
        created = repo.get(entry_id).created_at
        clock.advance(minutes=1)
        repo.update(entry_id, fields("GitHub Enterprise", "password"))
        entry = repo.get(entry_id)
        assert entry.title == "GitHub Enterprise"
        assert entry.created_at == created
        assert entry.modified_at == created + timedelta(minutes=1)
        assert entry.password_strength == 15

    def test_missing_entry(self, unlocked: Vault) -> None:
        repo = unlocked.repository
        with pytest.raises(EntryNotFoundError):
            repo.get(99)
        with pytest.raises(EntryNotFoundError):
            repo.update(99, fields())
        with pytest.raises(EntryNotFoundError):
            repo.delete(99)

    def test_failed_update_does_not_rewrite(self, unlocked: Vault) -> None:
        before = read_container(unlocked)
        with pytest.raises(EntryNotFoundError):
            unlocked.repository.update(99, fields())
        assert read_container(unlocked) == before

    def test_requires_unlocked_session(self, vault: Vault) -> None:
        with pytest.raises(NotAuthenticatedError):
            vault.repository.search("")
        with pytest.raises(NotAuthenticatedError):
            vault.repository.add(fields())


class TestContainerOnDisk:
    """What actually lands in vault.json."""

    def test_no_plaintext_on_disk(self, unlocked: Vault) -> None:
        unlocked.repository.add(fields("SecretBankTitle", "ultra-secret-pw"))
        raw = unlocked.store.vault_path.read_text()
        assert "SecretBankTitle" not in raw
        assert "ultra-secret-pw" not in raw

    def test_fresh_nonce_on_every_save(self, unlocked: Vault) -> None:
        nonces = {read_container(unlocked)["nonce"]}
        for i in range(3):
            unlocked.repository.add(fields(f"entry {i}"))
            nonces.add(read_container(unlocked)["nonce"])
        assert len(nonces) == 4

    def test_salt_and_iterations_carried_forward(self, unlocked: Vault) -> None:
        before = read_container(unlocked)
        unlocked.repository.add(fields())
        after = read_container(unlocked)
        assert after["salt"] == before["salt"]
        assert after["iterations"] == before["iterations"]
        assert after["version"] == 1

    def test_initial_salt_matches_verifier(self, vault: Vault) -> None:
        container = read_container(vault)
        verifier = vault.store.load_verifier()
        assert decode_field(container["salt"], "salt") == salt_from_verifier(verifier)
        assert container["iterations"] == vault.settings.argon2.iterations

    def test_tampered_ciphertext(self, unlocked: Vault) -> None:
        unlocked.repository.add(fields())
        container = read_container(unlocked)
        ciphertext = bytearray(decode_field(container["encrypted_data"], "encrypted_data"))
        ciphertext[0] ^= 0xFF
        container["encrypted_data"] = encode_field(bytes(ciphertext))
        unlocked.store.vault_path.write_text(json.dumps(container))
        with pytest.raises(DecryptionError):
            unlocked.repository.search("")

    def test_missing_container_after_unlock(self, unlocked: Vault) -> None:
        unlocked.store.vault_path.unlink()
        with pytest.raises(VaultNotFoundError):
            unlocked.repository.search("")

    def test_invalid_base64_nonce(self, unlocked: Vault) -> None:
        container = read_container(unlocked)
        container["nonce"] = "***"
        unlocked.store.vault_path.write_text(json.dumps(container))
        with pytest.raises(DecodeError) as exc_info:
            unlocked.repository.search("")
        assert exc_info.value.field == "nonce"


def test_concurrent_adds_get_unique_ids(unlocked: Vault) -> None:
    """Parallel adds never lose an update or hand out a duplicate id."""
    repo = unlocked.repository
    results: list[int] = []
    errors: list[BaseException] = []
    results_lock = threading.Lock()

    def worker(n: int) -> None:
        try:
            for i in range(5):
                entry_id = repo.add(fields(f"worker {n} entry {i}"))
                with results_lock:
                    results.append(entry_id)
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert errors == []
    assert sorted(results) == list(range(1, 21))
    assert repo.count() == 20
