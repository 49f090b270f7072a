"""Vault container and export document formats.

Both are JSON objects whose binary fields are base64 strings:

Container (``vault.json``)::

    {"encrypted_data": ..., "nonce": ..., "salt": ..., "iterations": 3, "version": 1}

Export::

    {"version": 1, "encrypted_data": ..., "nonce": ..., "salt": ..., "exported_at": "..."}

Parsing only validates structure. Base64 decoding happens just before
decryption so that DecodeError is reported for the specific field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from ..exceptions import FormatError, UnsupportedVersionError
from ..models.entry import decode_time, encode_time, utc_now

CONTAINER_VERSION = 1
EXPORT_VERSION = 1

SUPPORTED_VERSIONS = frozenset({CONTAINER_VERSION})


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise FormatError(f"Missing or invalid field: {key}")
    return value


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise FormatError(f"Missing or invalid field: {key}")
    return value


def _load_object(text: str | bytes, what: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"{what} is not valid JSON") from e
    if not isinstance(data, dict):
        raise FormatError(f"{what} must be a JSON object")
    return data


@dataclass(frozen=True)
class EncryptedPasswordStore:
    """The encrypted on-disk vault container.

    Attributes:
        encrypted_data: Base64 AES-GCM ciphertext with tag
        nonce: Base64 nonce, unique per encryption
        salt: Base64 KDF salt (bookkeeping; the live key uses the verifier salt)
        iterations: Argon2 time cost recorded for forward compatibility
        version: Schema version
    """

    encrypted_data: str
    nonce: str
    salt: str
    iterations: int
    version: int = CONTAINER_VERSION

    def with_payload(self, encrypted_data: str, nonce: str) -> EncryptedPasswordStore:
        """Copy with a new ciphertext/nonce, carrying salt and iterations forward."""
        return replace(self, encrypted_data=encrypted_data, nonce=nonce)

    def to_dict(self) -> dict[str, Any]:
        return {
            "encrypted_data": self.encrypted_data,
            "nonce": self.nonce,
            "salt": self.salt,
            "iterations": self.iterations,
            "version": self.version,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncryptedPasswordStore:
        """Validate and build a container.

        Raises:
            UnsupportedVersionError: If the version is unknown
            FormatError: If a field is missing or has the wrong type
        """
        version = data.get("version")
        if (
            not isinstance(version, int)
            or isinstance(version, bool)
            or version not in SUPPORTED_VERSIONS
        ):
            raise UnsupportedVersionError(version)
        return cls(
            encrypted_data=_require_str(data, "encrypted_data"),
            nonce=_require_str(data, "nonce"),
            salt=_require_str(data, "salt"),
            iterations=_require_int(data, "iterations"),
            version=version,
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> EncryptedPasswordStore:
        return cls.from_dict(_load_object(text, "Vault container"))


@dataclass(frozen=True)
class ExportDocument:
    """A vault export, encrypted under its own password-derived key.

    Attributes:
        encrypted_data: Base64 ciphertext of the serialized store
        nonce: Base64 nonce
        salt: Base64 salt used to derive the export key
        exported_at: When the export was produced
        version: Schema version
    """

    encrypted_data: str
    nonce: str
    salt: str
    exported_at: datetime
    version: int = EXPORT_VERSION

    @classmethod
    def create(cls, encrypted_data: str, nonce: str, salt: str) -> ExportDocument:
        return cls(
            encrypted_data=encrypted_data,
            nonce=nonce,
            salt=salt,
            exported_at=utc_now(),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "version": self.version,
                "encrypted_data": self.encrypted_data,
                "nonce": self.nonce,
                "salt": self.salt,
                "exported_at": encode_time(self.exported_at),
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> ExportDocument:
        """Parse an export document.

        Raises:
            UnsupportedVersionError: If the version is unknown
            FormatError: If the document is malformed
        """
        data = _load_object(text, "Export document")
        version = data.get("version")
        if isinstance(version, bool) or version != EXPORT_VERSION:
            raise UnsupportedVersionError(version)
        try:
            exported_at = decode_time(_require_str(data, "exported_at"))
        except ValueError as e:
            raise FormatError("Missing or invalid field: exported_at") from e
        return cls(
            encrypted_data=_require_str(data, "encrypted_data"),
            nonce=_require_str(data, "nonce"),
            salt=_require_str(data, "salt"),
            exported_at=exported_at,
            version=version,
        )
