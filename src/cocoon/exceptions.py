"""Custom exception hierarchy for cocoon.

All exceptions raised by the vault core inherit from CocoonError, so callers
(UI, command plumbing) can catch every library failure with a single clause
and still branch on the concrete kind.

Exception Hierarchy:
    CocoonError (base)
    ├── AuthenticationError
    │   ├── NotAuthenticatedError
    │   ├── InvalidMasterPasswordError
    │   └── LockedError
    ├── CryptoError
    │   ├── KeyDerivationError
    │   ├── EncryptionError
    │   ├── DecryptionError
    │   └── DecodeError
    ├── FormatError
    │   ├── UnsupportedVersionError
    │   └── CorruptedDataError
    ├── StorageError
    │   ├── VaultNotFoundError
    │   ├── StoragePermissionError
    │   └── SerializationError
    └── ValidationError
        ├── WeakMasterPasswordError
        ├── EntryNotFoundError
        ├── InvalidLengthError
        └── NoCharacterClassesError

Security Note:
    Exception messages never include passwords, keys, verifiers or
    decrypted content. They carry enough context to be logged safely.
"""

from __future__ import annotations

from datetime import datetime


class CocoonError(Exception):
    """Base exception for all cocoon errors."""


# --- Authentication Errors ---


class AuthenticationError(CocoonError):
    """Error in the session authentication state machine.

    Always recoverable by the caller: retry after a delay or
    re-authenticate. Raising one of these never corrupts vault state.
    """


class NotAuthenticatedError(AuthenticationError):
    """The session is locked or has expired through inactivity."""

    def __init__(self, message: str = "Vault is locked") -> None:
        super().__init__(message)


class InvalidMasterPasswordError(AuthenticationError):
    """The supplied master password did not match the stored verifier."""

    def __init__(self, attempts: int = 0, message: str = "Invalid master password") -> None:
        self.attempts = attempts
        super().__init__(message)


class LockedError(AuthenticationError):
    """Too many failed attempts; authentication is refused until ``until``."""

    def __init__(self, until: datetime) -> None:
        self.until = until
        super().__init__(
            f"Too many failed attempts, locked until {until.isoformat()}"
        )


# --- Crypto Errors ---


class CryptoError(CocoonError):
    """Error in cryptographic operations.

    Base class for key derivation, encryption, decryption and
    decoding failures.
    """


class KeyDerivationError(CryptoError):
    """Argon2 hashing failed internally (e.g. invalid parameters)."""

    def __init__(self, message: str = "Key derivation failed") -> None:
        super().__init__(message)


class EncryptionError(CryptoError):
    """The AEAD cipher refused to encrypt (e.g. malformed key)."""

    def __init__(self, message: str = "Encryption failed") -> None:
        super().__init__(message)


class DecryptionError(CryptoError):
    """Authenticated decryption failed.

    Raised for a wrong key, corrupted ciphertext or tampering. The
    message is kept generic on purpose; no partial plaintext is
    ever returned.
    """

    def __init__(
        self, message: str = "Decryption failed - wrong key or corrupted data"
    ) -> None:
        super().__init__(message)


class DecodeError(CryptoError):
    """A stored base64 field could not be decoded."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Could not decode field: {field}")


# --- Format Errors ---


class FormatError(CocoonError):
    """Vault container or export document does not match the schema."""


class UnsupportedVersionError(FormatError):
    """Container declares a schema version this library can't read."""

    def __init__(self, version: object) -> None:
        self.version = version
        super().__init__(f"Unsupported vault version: {version}")


class CorruptedDataError(FormatError):
    """Decrypted payload is not a valid serialized password store."""

    def __init__(self, message: str = "Decrypted vault data is corrupted") -> None:
        super().__init__(message)


# --- Storage Errors ---


class StorageError(CocoonError):
    """File I/O failure while reading or writing vault files.

    The core never retries I/O on its own; these are propagated.
    """


class VaultNotFoundError(StorageError):
    """An expected vault or verifier file does not exist."""

    def __init__(self, message: str = "No vault data found") -> None:
        super().__init__(message)


class StoragePermissionError(StorageError):
    """The vault directory or file is not accessible."""


class SerializationError(StorageError):
    """A vault file could not be serialized or parsed as JSON."""


# --- Validation Errors ---


class ValidationError(CocoonError):
    """Caller-supplied input was rejected."""


class WeakMasterPasswordError(ValidationError):
    """Master (or export) password is shorter than the minimum length."""

    def __init__(self, min_length: int = 8) -> None:
        self.min_length = min_length
        super().__init__(
            f"Master password must be at least {min_length} characters"
        )


class EntryNotFoundError(ValidationError):
    """No entry with the requested id exists in the vault."""

    def __init__(self, entry_id: int | None = None) -> None:
        self.entry_id = entry_id
        if entry_id is None:
            super().__init__("Entry not found")
        else:
            super().__init__(f"Entry not found: {entry_id}")


class InvalidLengthError(ValidationError):
    """Requested generated password length is out of range."""

    def __init__(self, length: int, minimum: int, maximum: int) -> None:
        self.length = length
        super().__init__(
            f"Password length must be between {minimum} and {maximum}, got {length}"
        )


class NoCharacterClassesError(ValidationError):
    """Password generation was requested with an empty character set."""

    def __init__(self) -> None:
        super().__init__("At least one character class must be selected")
