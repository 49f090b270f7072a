"""Authenticated encryption for the vault payload.

AES-256-GCM (via PyCryptodome) provides confidentiality and integrity in a
single primitive. The nonce is always generated inside encrypt(); callers
cannot supply one, so nonce reuse under a key is impossible by construction.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from Cryptodome.Cipher import AES
from Cryptodome.Random import get_random_bytes

from ..exceptions import CorruptedDataError, DecodeError, DecryptionError, EncryptionError
from .memory import SecureBytes, zeroize_buffer

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # 96 bits, recommended for GCM
TAG_SIZE = 16
KEY_SIZE = 32


def secure_random_bytes(size: int) -> bytes:
    """Return ``size`` bytes from the OS CSPRNG."""
    return get_random_bytes(size)


def _key_bytes(key: SecureBytes | bytes) -> bytes:
    return key.data if isinstance(key, SecureBytes) else key


def encrypt(plaintext: bytes, key: SecureBytes | bytes) -> tuple[bytes, bytes]:
    """Encrypt and authenticate plaintext with AES-256-GCM.

    Args:
        plaintext: Data to encrypt
        key: 32-byte key

    Returns:
        Tuple of (ciphertext || tag, nonce). The nonce is freshly sampled
        on every call.

    Raises:
        EncryptionError: If the key is malformed or the cipher fails
    """
    key_data = _key_bytes(key)
    if len(key_data) != KEY_SIZE:
        raise EncryptionError(f"Key must be {KEY_SIZE} bytes")
    nonce = secure_random_bytes(NONCE_SIZE)
    try:
        cipher = AES.new(key_data, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    except (ValueError, TypeError) as e:
        raise EncryptionError() from e
    return ciphertext + tag, nonce


def decrypt(ciphertext: bytes, nonce: bytes, key: SecureBytes | bytes) -> bytes:
    """Verify and decrypt AES-256-GCM ciphertext.

    Args:
        ciphertext: Ciphertext with the 16-byte tag appended
        nonce: Nonce returned by encrypt()
        key: 32-byte key

    Returns:
        The plaintext; never returned unless the tag verifies

    Raises:
        DecryptionError: Wrong key, wrong nonce, truncation or tampering
    """
    key_data = _key_bytes(key)
    if len(key_data) != KEY_SIZE or len(nonce) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
        raise DecryptionError()
    body, tag = ciphertext[:-TAG_SIZE], ciphertext[-TAG_SIZE:]
    try:
        cipher = AES.new(key_data, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        return cipher.decrypt_and_verify(body, tag)
    except (ValueError, TypeError) as e:
        logger.debug("GCM tag verification failed")
        raise DecryptionError() from e


def encode_field(data: bytes) -> str:
    """Base64-encode binary data for JSON storage."""
    return base64.b64encode(data).decode("ascii")


def decode_field(value: str, name: str) -> bytes:
    """Decode a stored base64 field.

    Raises:
        DecodeError: If the value is not valid base64
    """
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(name) from e


def encrypt_json(data: Any, key: SecureBytes | bytes) -> tuple[str, str]:
    """Serialize an object as JSON and encrypt it.

    Returns:
        Tuple of (encrypted_base64, nonce_base64)
    """
    plaintext = bytearray(json.dumps(data, separators=(",", ":")).encode("utf-8"))
    try:
        ciphertext, nonce = encrypt(bytes(plaintext), key)
    finally:
        zeroize_buffer(plaintext)
    return encode_field(ciphertext), encode_field(nonce)


def decrypt_json(encrypted_data: str, nonce: str, key: SecureBytes | bytes) -> Any:
    """Decode, decrypt and parse a JSON document.

    Raises:
        DecodeError: If a field is not valid base64 (checked before decrypting)
        DecryptionError: If authentication fails
        CorruptedDataError: If the authenticated plaintext is not JSON
    """
    ciphertext = decode_field(encrypted_data, "encrypted_data")
    nonce_bytes = decode_field(nonce, "nonce")
    plaintext = bytearray(decrypt(ciphertext, nonce_bytes, key))
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptedDataError() from e
    finally:
        zeroize_buffer(plaintext)
