"""Security-critical components for cocoon.

This module contains all security-sensitive code including:
- Secure memory handling (SecureBytes)
- Authenticated encryption of the vault payload
- Key derivation and master password verification
- Password strength scoring and secure generation

All code in this module should be audited carefully.
"""

from .crypto import (
    NONCE_SIZE,
    decode_field,
    decrypt,
    decrypt_json,
    encode_field,
    encrypt,
    encrypt_json,
    secure_random_bytes,
)
from .generator import CharacterClass, generate_password
from .kdf import (
    KEY_LENGTH,
    SALT_LENGTH,
    Argon2Config,
    config_from_verifier,
    derive_key,
    derive_key_from_verifier,
    hash_master_password,
    salt_from_verifier,
    vault_key_salt,
    verify_master_password,
)
from .memory import SecureBytes
from .strength import password_strength, strength_label

__all__ = [
    # Memory
    "SecureBytes",
    # Crypto
    "NONCE_SIZE",
    "decode_field",
    "decrypt",
    "decrypt_json",
    "encode_field",
    "encrypt",
    "encrypt_json",
    "secure_random_bytes",
    # KDF
    "KEY_LENGTH",
    "SALT_LENGTH",
    "Argon2Config",
    "config_from_verifier",
    "derive_key",
    "derive_key_from_verifier",
    "hash_master_password",
    "salt_from_verifier",
    "vault_key_salt",
    "verify_master_password",
    # Passwords
    "CharacterClass",
    "generate_password",
    "password_strength",
    "strength_label",
]
