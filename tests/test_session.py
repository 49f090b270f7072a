"""Tests for the session guard: unlock, idle timeout and lockout."""

import logging
import threading
from datetime import timedelta
from pathlib import Path

import pytest
from conftest import PASSWORD

from cocoon.exceptions import (
    InvalidMasterPasswordError,
    KeyDerivationError,
    LockedError,
    NotAuthenticatedError,
    VaultNotFoundError,
)
from cocoon.session import (
    IdleSweeper,
    LockReason,
    ReadWriteLock,
    SessionGuard,
    SessionStatus,
)
from cocoon.security.memory import SecureBytes
from cocoon.storage import VaultStore
from cocoon.testing import ManualClock, ManualScheduler

WRONG = "wrong-password"


def fail(guard: SessionGuard, times: int) -> None:
    for _ in range(times):
        with pytest.raises(InvalidMasterPasswordError):
            guard.authenticate(WRONG)


class TestAuthenticate:
    """Tests for SessionGuard.authenticate."""

    def test_starts_locked(self, guard: SessionGuard) -> None:
        assert guard.status is SessionStatus.LOCKED
        assert not guard.is_authenticated()

    def test_correct_password_unlocks(self, guard: SessionGuard) -> None:
        assert guard.authenticate(PASSWORD) is True
        assert guard.status is SessionStatus.UNLOCKED
        assert guard.is_authenticated()
        assert guard.failed_attempts == 0

    def test_wrong_password_counts(self, guard: SessionGuard) -> None:
        with pytest.raises(InvalidMasterPasswordError) as exc_info:
            guard.authenticate(WRONG)
        assert exc_info.value.attempts == 1
        assert guard.failed_attempts == 1
        assert guard.status is SessionStatus.LOCKED

    def test_success_resets_counter(self, guard: SessionGuard) -> None:
        fail(guard, 3)
        guard.authenticate(PASSWORD)
        assert guard.failed_attempts == 0
        assert guard.locked_until is None

    def test_missing_verifier(self, tmp_path: Path, clock: ManualClock) -> None:
        guard = SessionGuard(VaultStore(tmp_path), clock=clock)
        with pytest.raises(VaultNotFoundError):
            guard.authenticate(PASSWORD)
        assert guard.failed_attempts == 0

    def test_malformed_verifier(self, tmp_path: Path, clock: ManualClock) -> None:
        store = VaultStore(tmp_path)
        store.save_verifier("garbage")
        guard = SessionGuard(store, clock=clock)
        with pytest.raises(KeyDerivationError):
            guard.authenticate(PASSWORD)
        assert guard.failed_attempts == 0

    def test_reauthenticate_while_unlocked(self, guard: SessionGuard) -> None:
        guard.authenticate(PASSWORD)
        guard.authenticate(PASSWORD)
        assert guard.is_authenticated()

    def test_failure_while_unlocked_locks(self, guard: SessionGuard) -> None:
        reasons: list[LockReason] = []
        guard.add_lock_listener(reasons.append)
        guard.authenticate(PASSWORD)
        fail(guard, 1)
        assert guard.status is SessionStatus.LOCKED
        assert reasons == [LockReason.FAILED_ATTEMPT]
        with pytest.raises(NotAuthenticatedError):
            guard.require_key()


class TestLockout:
    """Five failures lock authentication out for five minutes."""

    def test_fifth_failure_starts_lockout(self, guard: SessionGuard, clock: ManualClock) -> None:
        fail(guard, 4)
        assert guard.status is SessionStatus.LOCKED
        with pytest.raises(InvalidMasterPasswordError) as exc_info:
            guard.authenticate(WRONG)
        assert exc_info.value.attempts == 5
        assert guard.status is SessionStatus.LOCKED_OUT
        assert guard.locked_until == clock.now() + timedelta(minutes=5)

    def test_locked_out_refuses_correct_password(self, guard: SessionGuard) -> None:
        fail(guard, 5)
        with pytest.raises(LockedError) as exc_info:
            guard.authenticate(PASSWORD)
        assert exc_info.value.until == guard.locked_until
        assert not guard.is_authenticated()

    def test_refused_attempts_do_not_count(self, guard: SessionGuard) -> None:
        fail(guard, 5)
        for _ in range(3):
            with pytest.raises(LockedError):
                guard.authenticate(WRONG)
        assert guard.failed_attempts == 5

    def test_unlock_allowed_when_window_ends(self, guard: SessionGuard, clock: ManualClock) -> None:
        fail(guard, 5)
        clock.advance(minutes=4, seconds=59)
        with pytest.raises(LockedError):
            guard.authenticate(PASSWORD)
        clock.advance(seconds=1)
        assert guard.status is SessionStatus.LOCKED
        guard.authenticate(PASSWORD)
        assert guard.status is SessionStatus.UNLOCKED
        assert guard.failed_attempts == 0

    def test_failure_after_window_locks_out_again(
        self, guard: SessionGuard, clock: ManualClock
    ) -> None:
        fail(guard, 5)
        clock.advance(minutes=5)
        with pytest.raises(InvalidMasterPasswordError) as exc_info:
            guard.authenticate(WRONG)
        assert exc_info.value.attempts == 6
        assert guard.status is SessionStatus.LOCKED_OUT

    def test_require_key_refused_while_locked_out(self, guard: SessionGuard) -> None:
        fail(guard, 5)
        with pytest.raises(LockedError):
            guard.require_key()

    def test_locked_error_carries_deadline(
        self, guard: SessionGuard, clock: ManualClock
    ) -> None:
        fail(guard, 5)
        with pytest.raises(LockedError) as exc_info:
            guard.require_key()
        assert exc_info.value.until == clock.now() + timedelta(minutes=5)


class TestIdleTimeout:
    """Tests for inactivity expiry."""

    def test_exactly_at_timeout_still_unlocked(
        self, guard: SessionGuard, clock: ManualClock
    ) -> None:
        guard.authenticate(PASSWORD)
        clock.advance(minutes=5)
        assert guard.is_authenticated()

    def test_expired_after_timeout(self, guard: SessionGuard, clock: ManualClock) -> None:
        guard.authenticate(PASSWORD)
        clock.advance(minutes=5, seconds=1)
        assert not guard.is_authenticated()
        assert guard.status is SessionStatus.LOCKED

    def test_require_key_on_expired_session_locks(
        self, guard: SessionGuard, clock: ManualClock
    ) -> None:
        reasons: list[LockReason] = []
        guard.add_lock_listener(reasons.append)
        guard.authenticate(PASSWORD)
        clock.advance(minutes=6)
        with pytest.raises(NotAuthenticatedError, match="expired"):
            guard.require_key()
        assert reasons == [LockReason.TIMEOUT]
        with pytest.raises(NotAuthenticatedError, match="locked"):
            guard.require_key()

    def test_activity_extends_session(self, guard: SessionGuard, clock: ManualClock) -> None:
        guard.authenticate(PASSWORD)
        for _ in range(3):
            clock.advance(minutes=4)
            with guard.require_key():
                pass
        clock.advance(minutes=4)
        assert guard.is_authenticated()

    def test_sweep(self, guard: SessionGuard, clock: ManualClock) -> None:
        reasons: list[LockReason] = []
        guard.add_lock_listener(reasons.append)
        guard.authenticate(PASSWORD)
        assert guard.sweep() is False
        clock.advance(minutes=5, seconds=1)
        assert guard.sweep() is True
        assert guard.sweep() is False
        assert reasons == [LockReason.TIMEOUT]

    def test_sweep_on_locked_session(self, guard: SessionGuard) -> None:
        assert guard.sweep() is False


class TestKeyHandling:
    def test_require_key_returns_private_copy(self, guard: SessionGuard) -> None:
        guard.authenticate(PASSWORD)
        first = guard.require_key()
        first.zeroize()
        with guard.require_key() as second:
            assert len(second) == 32
            assert not second.is_zeroized

    def test_lock_drops_key(self, guard: SessionGuard) -> None:
        guard.authenticate(PASSWORD)
        guard.lock()
        assert guard.status is SessionStatus.LOCKED
        with pytest.raises(NotAuthenticatedError):
            guard.require_key()

    def test_lock_is_idempotent(self, guard: SessionGuard) -> None:
        reasons: list[LockReason] = []
        guard.add_lock_listener(reasons.append)
        guard.authenticate(PASSWORD)
        guard.lock()
        guard.lock()
        assert reasons == [LockReason.MANUAL]

    def test_replace_key(self, guard: SessionGuard) -> None:
        guard.authenticate(PASSWORD)
        guard.replace_key(SecureBytes(b"\x07" * 32))
        with guard.require_key() as key:
            assert key == b"\x07" * 32

    def test_replace_key_requires_session(self, guard: SessionGuard) -> None:
        with pytest.raises(NotAuthenticatedError):
            guard.replace_key(SecureBytes(b"\x07" * 32))


class TestListeners:
    def test_remove_listener(self, guard: SessionGuard) -> None:
        reasons: list[LockReason] = []
        guard.add_lock_listener(reasons.append)
        guard.remove_lock_listener(reasons.append)
        guard.authenticate(PASSWORD)
        guard.lock()
        assert reasons == []

    def test_listener_errors_are_logged(
        self, guard: SessionGuard, caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(reason: LockReason) -> None:
            raise RuntimeError("boom")

        guard.add_lock_listener(broken)
        guard.authenticate(PASSWORD)
        with caplog.at_level(logging.ERROR, logger="cocoon.session"):
            guard.lock()
        assert guard.status is SessionStatus.LOCKED
        assert "Lock listener failed" in caplog.text


class TestIdleSweeper:
    """Tests for the periodic idle sweep."""

    @pytest.fixture
    def standalone(self, store: VaultStore, clock: ManualClock, vault: object) -> SessionGuard:
        return SessionGuard(store, clock=clock)

    def test_locks_idle_session(self, standalone: SessionGuard, clock: ManualClock) -> None:
        scheduler = ManualScheduler(clock)
        sweeper = IdleSweeper(standalone, scheduler, timedelta(seconds=60))
        sweeper.start()
        assert sweeper.is_running
        standalone.authenticate(PASSWORD)

        scheduler.advance(minutes=5)
        assert standalone.status is SessionStatus.UNLOCKED
        scheduler.advance(minutes=1)
        assert standalone.status is SessionStatus.LOCKED

    def test_start_is_idempotent(self, standalone: SessionGuard, clock: ManualClock) -> None:
        scheduler = ManualScheduler(clock)
        sweeper = IdleSweeper(standalone, scheduler)
        sweeper.start()
        sweeper.start()
        assert scheduler.pending == 1

    def test_stop(self, standalone: SessionGuard, clock: ManualClock) -> None:
        scheduler = ManualScheduler(clock)
        sweeper = IdleSweeper(standalone, scheduler)
        sweeper.start()
        sweeper.stop()
        assert not sweeper.is_running
        standalone.authenticate(PASSWORD)
        assert scheduler.advance(minutes=10) == 0
        assert standalone.status is SessionStatus.LOCKED


class TestReadWriteLock:
    """Tests for the reader/writer lock guarding session state."""

    def test_readers_share(self) -> None:
        lock = ReadWriteLock()
        inside = threading.Event()
        release = threading.Event()

        def reader() -> None:
            with lock.read():
                inside.set()
                release.wait(5)

        thread = threading.Thread(target=reader)
        thread.start()
        assert inside.wait(5)
        with lock.read():
            pass
        release.set()
        thread.join(5)

    def test_writer_waits_for_reader(self) -> None:
        lock = ReadWriteLock()
        order: list[str] = []
        inside = threading.Event()
        release = threading.Event()

        def reader() -> None:
            with lock.read():
                inside.set()
                release.wait(5)
                order.append("reader done")

        def writer() -> None:
            with lock.write():
                order.append("writer")

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        assert inside.wait(5)
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_thread.join(0.1)
        assert order == []
        release.set()
        reader_thread.join(5)
        writer_thread.join(5)
        assert order == ["reader done", "writer"]
