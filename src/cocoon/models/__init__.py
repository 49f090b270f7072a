"""Data models for vault contents.

This module provides typed Python classes for the decrypted vault: entries
and the store that owns them.
"""

from .entry import EntryFields, PasswordEntry
from .store import PasswordStore

__all__ = [
    "EntryFields",
    "PasswordEntry",
    "PasswordStore",
]
