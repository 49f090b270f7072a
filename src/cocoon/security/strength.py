"""Deterministic password strength scoring (0-100)."""

from __future__ import annotations

SYMBOLS = frozenset("!@#$%^&*()_+-=[]{}|;:,.<>?")

COMMON_PATTERNS = ("password", "123456")

# Upper bounds (inclusive) for each label, checked in order
STRENGTH_LABELS = (
    (24, "Weak"),
    (49, "Fair"),
    (74, "Good"),
    (100, "Strong"),
)


def _has_triple_repeat(password: str) -> bool:
    return any(
        password[i] == password[i + 1] == password[i + 2]
        for i in range(len(password) - 2)
    )


def password_strength(password: str) -> int:
    """Score a candidate password.

    Length: +20 at 8 chars, +15 more at 12, +10 more at 16.
    Character classes: +5 each for lowercase, uppercase and digits,
    +10 for a symbol. +10 if more than half the characters are unique.
    -20 (never below 0) for a common pattern or three identical
    characters in a row.
    """
    length = len(password)
    score = 0

    if length >= 8:
        score += 20
    if length >= 12:
        score += 15
    if length >= 16:
        score += 10

    if any(c.islower() for c in password):
        score += 5
    if any(c.isupper() for c in password):
        score += 5
    if any(c.isdigit() for c in password):
        score += 5
    if any(c in SYMBOLS for c in password):
        score += 10

    if len(set(password)) > length / 2:
        score += 10

    lowered = password.lower()
    if any(p in lowered for p in COMMON_PATTERNS) or _has_triple_repeat(password):
        score = max(score - 20, 0)

    return max(0, min(score, 100))


def strength_label(score: int) -> str:
    """Map a score to a human-readable band."""
    for bound, label in STRENGTH_LABELS:
        if score <= bound:
            return label
    return STRENGTH_LABELS[-1][1]
