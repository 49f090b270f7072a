"""Secure memory handling for key material.

SecureBytes keeps sensitive bytes in a mutable buffer so they can be
overwritten with zeros as soon as the holder is done with them. Python
may still leave copies behind (immutable ``bytes`` handed to C libraries,
garbage not yet collected), so this narrows the exposure window rather
than eliminating it.
"""

from __future__ import annotations

import hmac
from types import TracebackType


class SecureBytes:
    """Mutable, zeroizable container for secret bytes.

    Example:
        >>> with SecureBytes(b"secret-key") as key:
        ...     use(key.data)
        # buffer is zeroed here
    """

    __slots__ = ("_buffer", "_zeroized")

    def __init__(self, data: bytes | bytearray) -> None:
        self._buffer = bytearray(data)
        self._zeroized = False

    @property
    def data(self) -> bytes:
        """Return the contents as bytes.

        Raises:
            ValueError: If the buffer has already been zeroized
        """
        if self._zeroized:
            raise ValueError("SecureBytes has been zeroized")
        return bytes(self._buffer)

    @property
    def is_zeroized(self) -> bool:
        """Whether zeroize() has been called."""
        return self._zeroized

    def zeroize(self) -> None:
        """Overwrite the buffer with zeros and mark it unusable."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._zeroized = True

    def __len__(self) -> int:
        return len(self._buffer)

    def __eq__(self, other: object) -> bool:
        """Constant-time comparison against SecureBytes or bytes."""
        if isinstance(other, SecureBytes):
            return hmac.compare_digest(self._buffer, other._buffer)
        if isinstance(other, (bytes, bytearray)):
            return hmac.compare_digest(self._buffer, other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __enter__(self) -> SecureBytes:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.zeroize()

    def __del__(self) -> None:
        # __init__ may have failed before the slots were set
        if hasattr(self, "_buffer"):
            self.zeroize()

    def __repr__(self) -> str:
        """Return string representation (never shows contents)."""
        state = "zeroized" if self._zeroized else f"{len(self._buffer)} bytes"
        return f"SecureBytes(<{state}>)"


def zeroize_buffer(buffer: bytearray) -> None:
    """Overwrite a plaintext scratch buffer in place."""
    for i in range(len(buffer)):
        buffer[i] = 0
