"""Test utilities for cocoon.

WARNING: The fakes in this module are for TESTING ONLY. They keep secrets
in plain Python strings and never touch the real clipboard or keyboard.

They are useful for:
- Driving idle timeouts and lockout windows without sleeping
- Asserting what would have been typed or copied
- CI/CD pipelines and headless containers
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from cocoon.scheduler import ScheduledTask, run_task


class ManualClock:
    """Clock that only moves when told to.

    Example:
        >>> clock = ManualClock()
        >>> start = clock.now()
        >>> clock.advance(minutes=5)
        >>> clock.now() - start
        datetime.timedelta(seconds=300)
    """

    EPOCH = datetime(2024, 1, 1, tzinfo=UTC)

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or self.EPOCH

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> None:
        """Move forward by ``delta`` or by timedelta keyword arguments."""
        self._now += delta if delta is not None else timedelta(**kwargs)

    def __repr__(self) -> str:
        return f"ManualClock({self._now.isoformat()})"


class ManualScheduler:
    """Scheduler whose tasks run only when virtual time is advanced.

    Shares a ManualClock with the code under test, so advancing the
    scheduler also advances what the session guard sees as "now".

    Example:
        >>> clock = ManualClock()
        >>> scheduler = ManualScheduler(clock)
        >>> scheduler.call_later(timedelta(seconds=30), callback)
        >>> scheduler.advance(seconds=30)  # callback runs here
    """

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock or ManualClock()
        self._queue: list[tuple[datetime, int, ScheduledTask, Callable[[], None], timedelta | None]] = []
        self._counter = itertools.count()

    def _push(
        self,
        due: datetime,
        task: ScheduledTask,
        callback: Callable[[], None],
        interval: timedelta | None,
    ) -> None:
        heapq.heappush(self._queue, (due, next(self._counter), task, callback, interval))

    def call_later(
        self, delay: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(name)
        self._push(self.clock.now() + delay, task, callback, None)
        return task

    def call_every(
        self, interval: timedelta, callback: Callable[[], None], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(name)
        self._push(self.clock.now() + interval, task, callback, interval)
        return task

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> int:
        """Advance time, running every task that falls due on the way.

        Tasks run in due order with the clock set to their due time.

        Returns:
            Number of callbacks run
        """
        target = self.clock.now() + (delta if delta is not None else timedelta(**kwargs))
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task, callback, interval = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self.clock.advance(due - self.clock.now())
            run_task(task, callback)
            ran += 1
            if interval is not None and not task.cancelled:
                self._push(due + interval, task, callback, interval)
        self.clock.advance(target - self.clock.now())
        return ran

    @property
    def pending(self) -> int:
        """Number of live (uncancelled) tasks."""
        return sum(1 for item in self._queue if not item[2].cancelled)

    def shutdown(self) -> None:
        for item in self._queue:
            item[2].cancel()
        self._queue.clear()


class MemoryClipboard:
    """In-memory ClipboardProvider."""

    def __init__(self) -> None:
        self.text: str | None = None
        self.clears = 0

    def write_text(self, text: str) -> None:
        self.text = text

    def read_text(self) -> str | None:
        return self.text

    def clear(self) -> None:
        self.text = None
        self.clears += 1


class RecordingKeyboard:
    """AutoTypeProvider that records keystroke actions instead of typing.

    ``actions`` holds tuples such as ("text", "alice"), ("tab",), ("enter",).
    """

    def __init__(self) -> None:
        self.actions: list[tuple[str, ...]] = []

    def type_text(self, text: str) -> None:
        self.actions.append(("text", text))

    def press_tab(self) -> None:
        self.actions.append(("tab",))

    def press_enter(self) -> None:
        self.actions.append(("enter",))


__all__ = [
    "ManualClock",
    "ManualScheduler",
    "MemoryClipboard",
    "RecordingKeyboard",
]
