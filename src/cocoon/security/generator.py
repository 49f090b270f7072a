"""Cryptographically secure password generation."""

from __future__ import annotations

import secrets
import string
from collections.abc import Iterable
from enum import Flag, auto

from ..exceptions import InvalidLengthError, NoCharacterClassesError

MIN_LENGTH = 4
MAX_LENGTH = 128
DEFAULT_LENGTH = 16

SYMBOL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


class CharacterClass(Flag):
    """Character classes that can be combined into a generator pool."""

    LOWER = auto()
    UPPER = auto()
    DIGIT = auto()
    SYMBOL = auto()

    @property
    def characters(self) -> str:
        """Characters contributed by the selected classes, in a fixed order."""
        return "".join(
            _CLASS_CHARS[member] for member in _CLASS_CHARS if member in self
        )

    @classmethod
    def all(cls) -> CharacterClass:
        return cls.LOWER | cls.UPPER | cls.DIGIT | cls.SYMBOL


_CLASS_CHARS = {
    CharacterClass.LOWER: string.ascii_lowercase,
    CharacterClass.UPPER: string.ascii_uppercase,
    CharacterClass.DIGIT: string.digits,
    CharacterClass.SYMBOL: SYMBOL_CHARS,
}


def _combine(classes: CharacterClass | Iterable[CharacterClass]) -> CharacterClass:
    if isinstance(classes, CharacterClass):
        return classes
    combined = CharacterClass(0)
    for cls in classes:
        combined |= cls
    return combined


def generate_password(
    length: int = DEFAULT_LENGTH,
    classes: CharacterClass | Iterable[CharacterClass] = CharacterClass.all(),
) -> str:
    """Generate a random password.

    Every character is drawn independently and uniformly from the union of
    the selected classes using the ``secrets`` CSPRNG (rejection sampling,
    no modulo bias).

    Args:
        length: Number of characters, 4 to 128 inclusive
        classes: A CharacterClass flag combination or an iterable of classes

    Raises:
        InvalidLengthError: If length is out of range
        NoCharacterClassesError: If no class is selected
    """
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise InvalidLengthError(length, MIN_LENGTH, MAX_LENGTH)

    pool = _combine(classes).characters
    if not pool:
        raise NoCharacterClassesError()

    return "".join(secrets.choice(pool) for _ in range(length))
