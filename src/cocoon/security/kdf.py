"""Key derivation and master-password verification.

This module provides:
- Argon2id raw key derivation for the vault encryption key
- Argon2id PHC-string hashing for the master password verifier
- Helpers to recover the salt and cost parameters from a verifier, so the
  encryption key can always be re-derived from the password alone

Security considerations:
- Argon2id is memory-hard and slow on purpose (~100ms with defaults)
- Derived keys are returned as SecureBytes for explicit zeroization
- Verification uses argon2-cffi's constant-time comparison
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass

import argon2
from argon2.exceptions import (
    HashingError,
    InvalidHashError,
    VerificationError,
    VerifyMismatchError,
)
from argon2.low_level import Type as Argon2Type
from argon2.low_level import hash_secret_raw

from ..exceptions import KeyDerivationError, WeakMasterPasswordError
from .memory import SecureBytes

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
SALT_LENGTH = 32
MIN_MASTER_PASSWORD_LENGTH = 8

# Separates the vault key from the verifier hash, which shares its
# password, salt and cost parameters
VAULT_KEY_CONTEXT = b"cocoon-vault-key"

# Minimum Argon2 parameters for security
# Based on OWASP recommendations (as of 2024)
ARGON2_MIN_MEMORY_KIB = 16 * 1024  # 16 MiB minimum
ARGON2_MIN_ITERATIONS = 3
ARGON2_MIN_PARALLELISM = 1


@dataclass(frozen=True, slots=True)
class Argon2Config:
    """Cost parameters for Argon2id.

    The salt is deliberately not part of the configuration: the verifier
    owns it, and the encryption key is derived with the verifier's salt.

    Attributes:
        memory_kib: Memory usage in KiB
        iterations: Number of iterations (time cost)
        parallelism: Degree of parallelism
    """

    memory_kib: int
    iterations: int
    parallelism: int

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.memory_kib < 8 * self.parallelism:
            raise ValueError("Argon2 memory must be at least 8 KiB per lane")
        if self.iterations < 1:
            raise ValueError("Argon2 iterations must be at least 1")
        if self.parallelism < 1:
            raise ValueError("Argon2 parallelism must be at least 1")

    def validate_security(self) -> None:
        """Check that parameters meet minimum security requirements.

        Raises:
            ValueError: If parameters are below security minimums
        """
        issues = []
        if self.memory_kib < ARGON2_MIN_MEMORY_KIB:
            issues.append(
                f"Memory {self.memory_kib} KiB is below minimum "
                f"{ARGON2_MIN_MEMORY_KIB} KiB"
            )
        if self.iterations < ARGON2_MIN_ITERATIONS:
            issues.append(
                f"Iterations {self.iterations} is below minimum "
                f"{ARGON2_MIN_ITERATIONS}"
            )
        if self.parallelism < ARGON2_MIN_PARALLELISM:
            issues.append(
                f"Parallelism {self.parallelism} is below minimum "
                f"{ARGON2_MIN_PARALLELISM}"
            )
        if issues:
            raise ValueError("Weak Argon2 parameters: " + "; ".join(issues))

    @classmethod
    def standard(cls) -> Argon2Config:
        """Recommended parameters: 64 MiB, 3 iterations, 4 lanes."""
        return cls(memory_kib=64 * 1024, iterations=3, parallelism=4)

    @classmethod
    def high_security(cls) -> Argon2Config:
        """Stronger parameters for high-value vaults (slow to unlock)."""
        return cls(memory_kib=256 * 1024, iterations=10, parallelism=4)

    @classmethod
    def fast(cls) -> Argon2Config:
        """Minimum acceptable parameters. Intended for tests."""
        return cls(memory_kib=16 * 1024, iterations=3, parallelism=2)

    @classmethod
    def default(cls) -> Argon2Config:
        """Alias for standard()."""
        return cls.standard()

    def password_hasher(self) -> argon2.PasswordHasher:
        """Build an argon2-cffi PasswordHasher with these parameters."""
        return argon2.PasswordHasher(
            time_cost=self.iterations,
            memory_cost=self.memory_kib,
            parallelism=self.parallelism,
            hash_len=KEY_LENGTH,
            salt_len=SALT_LENGTH,
            type=Argon2Type.ID,
        )


def _as_bytes(password: str | bytes) -> bytes:
    if isinstance(password, str):
        return password.encode("utf-8")
    return password


def derive_key(
    password: str | bytes,
    salt: bytes,
    config: Argon2Config | None = None,
) -> SecureBytes:
    """Derive a 32-byte encryption key using Argon2id.

    Deterministic for a fixed password, salt and configuration.

    Args:
        password: Master or export password
        salt: Salt bytes (normally taken from the master verifier)
        config: Cost parameters (defaults to Argon2Config.default())

    Returns:
        32-byte derived key wrapped in SecureBytes

    Raises:
        KeyDerivationError: If Argon2 rejects the parameters or fails
    """
    config = config or Argon2Config.default()
    try:
        derived = hash_secret_raw(
            secret=_as_bytes(password),
            salt=salt,
            time_cost=config.iterations,
            memory_cost=config.memory_kib,
            parallelism=config.parallelism,
            hash_len=KEY_LENGTH,
            type=Argon2Type.ID,
        )
    except (HashingError, ValueError, TypeError) as e:
        logger.error("Argon2 key derivation failed: %s", type(e).__name__)
        raise KeyDerivationError() from e
    return SecureBytes(derived)


def check_master_password(password: str, min_length: int = MIN_MASTER_PASSWORD_LENGTH) -> None:
    """Raise WeakMasterPasswordError if the password is too short."""
    if len(password) < min_length:
        raise WeakMasterPasswordError(min_length)


def hash_master_password(password: str, config: Argon2Config | None = None) -> str:
    """Create a storable master password verifier.

    A fresh random salt is generated for every call.

    Args:
        password: The new master password (at least 8 characters)
        config: Cost parameters (defaults to Argon2Config.default())

    Returns:
        Self-describing PHC string (algorithm, parameters, salt, hash)

    Raises:
        WeakMasterPasswordError: If the password is shorter than 8 characters
        KeyDerivationError: If hashing fails
    """
    check_master_password(password)
    config = config or Argon2Config.default()
    try:
        return config.password_hasher().hash(password)
    except HashingError as e:
        raise KeyDerivationError() from e


def verify_master_password(password: str, verifier: str) -> bool:
    """Check a password against a verifier in constant time.

    Returns:
        True on match, False on mismatch

    Raises:
        KeyDerivationError: If the verifier itself is malformed
    """
    try:
        return argon2.PasswordHasher().verify(verifier, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError, ValueError) as e:
        logger.warning("Master verifier could not be checked: %s", type(e).__name__)
        raise KeyDerivationError("Master verifier is malformed") from e


def config_from_verifier(verifier: str) -> Argon2Config:
    """Recover the Argon2 cost parameters embedded in a verifier."""
    try:
        params = argon2.extract_parameters(verifier)
    except ValueError as e:
        raise KeyDerivationError("Master verifier is malformed") from e
    return Argon2Config(
        memory_kib=params.memory_cost,
        iterations=params.time_cost,
        parallelism=params.parallelism,
    )


def salt_from_verifier(verifier: str) -> bytes:
    """Decode the raw salt embedded in a PHC verifier string.

    Format: ``$argon2id$v=19$m=...,t=...,p=...$<salt>$<hash>`` where
    salt and hash are unpadded base64.
    """
    parts = verifier.split("$")
    if len(parts) != 6 or not parts[1].startswith("argon2"):
        raise KeyDerivationError("Master verifier is malformed")
    encoded = parts[4]
    try:
        return base64.b64decode(encoded + "=" * (-len(encoded) % 4), validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyDerivationError("Master verifier is malformed") from e


def vault_key_salt(verifier_salt: bytes) -> bytes:
    """Salt for the vault key, derived from (never equal to) the verifier salt."""
    return hashlib.sha256(VAULT_KEY_CONTEXT + verifier_salt).digest()


def derive_key_from_verifier(password: str, verifier: str) -> SecureBytes:
    """Derive the vault key using the salt and parameters of a verifier.

    The verifier stores Argon2id(password, salt) itself, so the key is
    derived over vault_key_salt(salt) instead. Reading master.hash never
    yields the key.
    """
    return derive_key(
        password,
        vault_key_salt(salt_from_verifier(verifier)),
        config_from_verifier(verifier),
    )
