"""Clocks and cancellable delayed tasks.

The session guard and the clipboard clearing logic never read the wall
clock or start threads directly. They take a Clock and a Scheduler, so
production code runs on real time and threads while tests drive both
with cocoon.testing.ManualClock / ManualScheduler.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ScheduledTask:
    """Handle to a pending (possibly repeating) task."""

    def __init__(self, name: str = "task") -> None:
        self.name = name
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Prevent any further runs. Idempotent."""
        self._cancelled.set()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"ScheduledTask({self.name!r}, {state})"


@runtime_checkable
class Scheduler(Protocol):
    """Runs callbacks after a delay or on a fixed interval."""

    def call_later(
        self, delay: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask: ...

    def call_every(
        self, interval: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask: ...

    def shutdown(self) -> None: ...


def run_task(task: ScheduledTask, callback: Callable[[], None]) -> None:
    """Invoke a callback unless cancelled; errors are logged, not raised."""
    if task.cancelled:
        return
    try:
        callback()
    except Exception:
        logger.exception("Scheduled task %r failed", task.name)


class ThreadScheduler:
    """Scheduler backed by daemon threads.

    Each task waits on its own cancellation event, so cancel() wakes it
    immediately instead of waiting out the remaining delay.
    """

    def __init__(self) -> None:
        self._tasks: list[ScheduledTask] = []
        self._lock = threading.Lock()

    def _start(self, task: ScheduledTask, target: Callable[[], None]) -> ScheduledTask:
        with self._lock:
            self._tasks = [t for t in self._tasks if not t.cancelled]
            self._tasks.append(task)
        thread = threading.Thread(target=target, name=f"cocoon-{task.name}", daemon=True)
        thread.start()
        return task

    def call_later(
        self, delay: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(name)

        def _run() -> None:
            if not task._cancelled.wait(delay.total_seconds()):
                run_task(task, callback)
                task.cancel()

        return self._start(task, _run)

    def call_every(
        self, interval: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(name)

        def _run() -> None:
            while not task._cancelled.wait(interval.total_seconds()):
                run_task(task, callback)

        return self._start(task, _run)

    def shutdown(self) -> None:
        """Cancel every outstanding task."""
        with self._lock:
            tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
