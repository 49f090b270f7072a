"""Session authentication state machine.

States:
    LOCKED      no key held; authenticate() may be attempted
    UNLOCKED    key held and the session has been active recently
    LOCKED_OUT  too many failures; authenticate() refused until a deadline

The derived key exists only inside SessionState while UNLOCKED. Callers
get a private copy per operation (require_key) which they zeroize when
done, so an idle-timeout sweep can wipe the session key at any moment
without pulling key material out from under a running operation.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .config import VaultSettings
from .exceptions import (
    InvalidMasterPasswordError,
    LockedError,
    NotAuthenticatedError,
)
from .scheduler import Clock, ScheduledTask, Scheduler, SystemClock
from .security.kdf import derive_key_from_verifier, verify_master_password
from .security.memory import SecureBytes
from .storage import VaultStore

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT = timedelta(minutes=5)
DEFAULT_MAX_FAILED_ATTEMPTS = 5
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=5)


class SessionStatus(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    LOCKED_OUT = "locked_out"


class LockReason(Enum):
    """Why an unlocked session ended."""

    MANUAL = "manual"
    TIMEOUT = "timeout"
    FAILED_ATTEMPT = "failed_attempt"
    CLOSED = "closed"


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so state transitions aren't starved by UI polling.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class SessionState:
    """Mutable session data, owned by SessionGuard.

    Attributes:
        key: Derived vault key (present only while unlocked)
        last_activity: Time of the last successful authenticated operation
        session_timeout: Idle time after which the session expires
        failed_attempts: Consecutive failed authentications
        locked_until: End of the current lockout window, if any
    """

    session_timeout: timedelta = DEFAULT_SESSION_TIMEOUT
    key: SecureBytes | None = None
    last_activity: datetime | None = None
    failed_attempts: int = 0
    locked_until: datetime | None = None

    def is_idle_expired(self, now: datetime) -> bool:
        if self.last_activity is None:
            return True
        return now - self.last_activity > self.session_timeout

    def lockout_deadline(self, now: datetime) -> datetime | None:
        """End of the running lockout window, or None when not locked out."""
        if self.locked_until is not None and now < self.locked_until:
            return self.locked_until
        return None

    def is_locked_out(self, now: datetime) -> bool:
        return self.lockout_deadline(now) is not None

    def drop_key(self) -> None:
        """Zeroize and release the key."""
        if self.key is not None:
            self.key.zeroize()
            self.key = None
        self.last_activity = None


LockListener = Callable[[LockReason], None]


class SessionGuard:
    """Verifies the master password and guards the derived key.

    Lockout policy: every failed authenticate() increments the failure
    counter; when it reaches ``max_failed_attempts`` authentication is
    refused until ``lockout_duration`` has passed. The counter is only
    reset by a successful authentication, so a failure right after the
    window expires locks out again immediately.

    Example:
        guard = SessionGuard(VaultStore(path))
        guard.authenticate("correct horse")
        with guard.require_key() as key:
            ...
        guard.lock()
    """

    def __init__(
        self,
        store: VaultStore,
        *,
        session_timeout: timedelta = DEFAULT_SESSION_TIMEOUT,
        max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS,
        lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._max_failed_attempts = max_failed_attempts
        self._lockout_duration = lockout_duration
        self._state = SessionState(session_timeout=session_timeout)
        self._lock = ReadWriteLock()
        self._listeners: list[LockListener] = []

    @classmethod
    def from_settings(
        cls, settings: VaultSettings, store: VaultStore, clock: Clock | None = None
    ) -> SessionGuard:
        return cls(
            store,
            session_timeout=settings.session_timeout,
            max_failed_attempts=settings.max_failed_attempts,
            lockout_duration=settings.lockout_duration,
            clock=clock,
        )

    # --- Read-only views ---

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def session_timeout(self) -> timedelta:
        return self._state.session_timeout

    @property
    def failed_attempts(self) -> int:
        with self._lock.read():
            return self._state.failed_attempts

    @property
    def locked_until(self) -> datetime | None:
        with self._lock.read():
            return self._state.locked_until

    @property
    def status(self) -> SessionStatus:
        now = self._clock.now()
        with self._lock.read():
            if self._state.is_locked_out(now):
                return SessionStatus.LOCKED_OUT
            if self._state.key is not None and not self._state.is_idle_expired(now):
                return SessionStatus.UNLOCKED
            return SessionStatus.LOCKED

    def is_authenticated(self) -> bool:
        """Whether the session is unlocked and not idle-expired.

        Pure read: an expired session is reported as not authenticated
        but is only actually locked by the next operation or sweep.
        """
        return self.status is SessionStatus.UNLOCKED

    # --- Listeners ---

    def add_lock_listener(self, listener: LockListener) -> None:
        """Register a callback run whenever an unlocked session ends."""
        self._listeners.append(listener)

    def remove_lock_listener(self, listener: LockListener) -> None:
        self._listeners.remove(listener)

    def _notify(self, reason: LockReason) -> None:
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception:
                logger.exception("Lock listener failed")

    # --- Transitions ---

    def authenticate(self, password: str) -> bool:
        """Verify the master password and unlock the session.

        Returns:
            True once the session is unlocked

        Raises:
            LockedError: A lockout window is still running
            InvalidMasterPasswordError: Wrong password (counters already updated)
            VaultNotFoundError: No master password has been set up
            KeyDerivationError: The stored verifier is unusable
        """
        ended = False
        try:
            with self._lock.write():
                now = self._clock.now()
                state = self._state
                deadline = state.lockout_deadline(now)
                if deadline is not None:
                    logger.warning("Authentication refused: locked out")
                    raise LockedError(deadline)

                verifier = self._store.load_verifier()
                if not verify_master_password(password, verifier):
                    ended = state.key is not None
                    state.drop_key()
                    state.failed_attempts += 1
                    logger.warning(
                        "Failed authentication attempt %d", state.failed_attempts
                    )
                    if state.failed_attempts >= self._max_failed_attempts:
                        state.locked_until = now + self._lockout_duration
                        logger.warning(
                            "Too many failed attempts, locked out until %s",
                            state.locked_until.isoformat(),
                        )
                    raise InvalidMasterPasswordError(state.failed_attempts)

                key = derive_key_from_verifier(password, verifier)
                state.drop_key()
                state.key = key
                state.failed_attempts = 0
                state.locked_until = None
                state.last_activity = now
                logger.info("Vault unlocked")
                return True
        finally:
            if ended:
                self._notify(LockReason.FAILED_ATTEMPT)

    def lock(self, reason: LockReason = LockReason.MANUAL) -> None:
        """Zeroize the key and return to LOCKED. Idempotent."""
        with self._lock.write():
            was_unlocked = self._state.key is not None
            self._state.drop_key()
        if was_unlocked:
            logger.info("Vault locked (%s)", reason.value)
            self._notify(reason)

    def sweep(self) -> bool:
        """Lock the session if it has been idle past the timeout.

        Returns:
            True if this call performed the UNLOCKED -> LOCKED transition
        """
        with self._lock.write():
            state = self._state
            expired = state.key is not None and state.is_idle_expired(self._clock.now())
            if expired:
                state.drop_key()
        if expired:
            logger.info("Vault locked (%s)", LockReason.TIMEOUT.value)
            self._notify(LockReason.TIMEOUT)
        return expired

    def require_key(self) -> SecureBytes:
        """Gate an authenticated operation and hand out the key.

        Refreshes last_activity on success. The returned SecureBytes is a
        private copy owned by the caller, who should zeroize it (use it as
        a context manager).

        Raises:
            LockedError: Inside a lockout window
            NotAuthenticatedError: Locked, or idle-expired (which locks)
        """
        expired = False
        try:
            with self._lock.write():
                now = self._clock.now()
                state = self._state
                deadline = state.lockout_deadline(now)
                if deadline is not None:
                    raise LockedError(deadline)
                if state.key is None:
                    raise NotAuthenticatedError()
                if state.is_idle_expired(now):
                    state.drop_key()
                    expired = True
                    raise NotAuthenticatedError("Session expired")
                state.last_activity = now
                return SecureBytes(state.key.data)
        finally:
            if expired:
                logger.info("Vault locked (%s)", LockReason.TIMEOUT.value)
                self._notify(LockReason.TIMEOUT)

    def replace_key(self, key: SecureBytes) -> None:
        """Swap in a new session key after the master password changed.

        Raises:
            NotAuthenticatedError: If the session isn't unlocked
        """
        with self._lock.write():
            if self._state.key is None:
                raise NotAuthenticatedError()
            self._state.key.zeroize()
            self._state.key = SecureBytes(key.data)
            self._state.last_activity = self._clock.now()


class IdleSweeper:
    """Periodically runs SessionGuard.sweep() on a scheduler."""

    def __init__(
        self,
        session: SessionGuard,
        scheduler: Scheduler,
        interval: timedelta = timedelta(seconds=60),
    ) -> None:
        self._session = session
        self._scheduler = scheduler
        self._interval = interval
        self._task: ScheduledTask | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.cancelled

    def start(self) -> None:
        if self.is_running:
            return
        self._task = self._scheduler.call_every(
            self._interval, self._session.sweep, name="idle-sweep"
        )
        logger.debug("Idle sweeper started (every %ss)", self._interval.total_seconds())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
