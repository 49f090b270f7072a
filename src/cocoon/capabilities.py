"""Interfaces to platform collaborators outside the vault core.

Keystroke injection and clipboard access are implemented per platform by
the host application. The core only depends on these protocols, which
third parties can implement without importing cocoon.

    - AutoTypeProvider: types text into the focused application
    - ClipboardProvider: reads, writes and clears the system clipboard

Software implementations for tests live in cocoon.testing.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Protocol, runtime_checkable

from .models import PasswordEntry
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


@runtime_checkable
class AutoTypeProvider(Protocol):
    """Keystroke injection into another application."""

    def type_text(self, text: str) -> None: ...

    def press_tab(self) -> None: ...

    def press_enter(self) -> None: ...


@runtime_checkable
class ClipboardProvider(Protocol):
    """System clipboard access."""

    def write_text(self, text: str) -> None: ...

    def read_text(self) -> str | None: ...

    def clear(self) -> None: ...


def autotype_entry(entry: PasswordEntry, provider: AutoTypeProvider, *, submit: bool = True) -> None:
    """Type ``username TAB password`` and optionally press ENTER."""
    provider.type_text(entry.username)
    provider.press_tab()
    provider.type_text(entry.password)
    if submit:
        provider.press_enter()
    logger.debug("Auto-typed entry %d", entry.id)


class ClipboardGuard:
    """Copies secrets to the clipboard and clears them after a delay.

    The clear is skipped if the clipboard no longer holds the copied value,
    so something the user copied afterwards is left alone. Copying again
    cancels the previous pending clear.
    """

    def __init__(
        self,
        clipboard: ClipboardProvider,
        scheduler: Scheduler,
        clear_delay: timedelta = timedelta(seconds=30),
    ) -> None:
        self._clipboard = clipboard
        self._scheduler = scheduler
        self._clear_delay = clear_delay
        self._pending: ScheduledTask | None = None
        self._secret: str | None = None

    @property
    def clipboard(self) -> ClipboardProvider:
        return self._clipboard

    @property
    def has_pending_clear(self) -> bool:
        return self._pending is not None and not self._pending.cancelled

    def copy(self, text: str, *, sensitive: bool = True) -> None:
        """Write text; schedule a clear when it is sensitive."""
        self.cancel()
        self._clipboard.write_text(text)
        if not sensitive:
            return
        self._secret = text
        self._pending = self._scheduler.call_later(
            self._clear_delay, self.clear_now, name="clipboard-clear"
        )

    def clear_now(self) -> None:
        """Clear a pending secret immediately, if the clipboard still holds it."""
        secret = self._secret
        self.cancel()
        if secret is not None and self._clipboard.read_text() == secret:
            self._clipboard.clear()
            logger.debug("Cleared copied secret from clipboard")

    def cancel(self) -> None:
        """Drop the pending clear without touching the clipboard."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._secret = None
