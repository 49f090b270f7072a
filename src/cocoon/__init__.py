"""cocoon - the security core of a local password manager.

Credentials are kept in a single encrypted vault file, unlocked by a
master password. The core prioritizes:
- Memory-hard key derivation (Argon2id) from the master password
- Authenticated encryption (AES-256-GCM) with a fresh nonce on every save
- A session that locks on inactivity and locks out after repeated failures
- Zeroization of derived keys when the session ends

Example:
    from cocoon import Vault, VaultSettings

    with Vault(VaultSettings()) as vault:
        vault.setup_master_password("correcthorse123")
        vault.authenticate("correcthorse123")
        entry_id = vault.add(title="GitHub", username="a@b.com", password="x")
        print(vault.search("git"))
"""

import logging

__version__ = "0.1.0"

from .capabilities import AutoTypeProvider, ClipboardProvider
from .config import VaultSettings
from .exceptions import (
    AuthenticationError,
    CocoonError,
    CorruptedDataError,
    CryptoError,
    DecodeError,
    DecryptionError,
    EncryptionError,
    EntryNotFoundError,
    FormatError,
    InvalidLengthError,
    InvalidMasterPasswordError,
    KeyDerivationError,
    LockedError,
    NoCharacterClassesError,
    NotAuthenticatedError,
    SerializationError,
    StorageError,
    StoragePermissionError,
    UnsupportedVersionError,
    ValidationError,
    VaultNotFoundError,
    WeakMasterPasswordError,
)
from .models import EntryFields, PasswordEntry, PasswordStore
from .security import Argon2Config, CharacterClass, generate_password, password_strength
from .session import LockReason, SessionGuard, SessionStatus
from .vault import Vault

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Core classes
    "Argon2Config",
    "EntryFields",
    "PasswordEntry",
    "PasswordStore",
    "SessionGuard",
    "SessionStatus",
    "LockReason",
    "Vault",
    "VaultSettings",
    # Passwords
    "CharacterClass",
    "generate_password",
    "password_strength",
    # Platform collaborators
    "AutoTypeProvider",
    "ClipboardProvider",
    # Exceptions
    "CocoonError",
    "AuthenticationError",
    "NotAuthenticatedError",
    "InvalidMasterPasswordError",
    "LockedError",
    "CryptoError",
    "KeyDerivationError",
    "EncryptionError",
    "DecryptionError",
    "DecodeError",
    "FormatError",
    "UnsupportedVersionError",
    "CorruptedDataError",
    "StorageError",
    "VaultNotFoundError",
    "StoragePermissionError",
    "SerializationError",
    "ValidationError",
    "WeakMasterPasswordError",
    "EntryNotFoundError",
    "InvalidLengthError",
    "NoCharacterClassesError",
]
