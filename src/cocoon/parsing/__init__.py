"""Vault file formats.

This module handles the JSON documents written to disk or handed to the
user: the encrypted vault container and the export document.
"""

from .container import (
    CONTAINER_VERSION,
    EXPORT_VERSION,
    EncryptedPasswordStore,
    ExportDocument,
)

__all__ = [
    "CONTAINER_VERSION",
    "EXPORT_VERSION",
    "EncryptedPasswordStore",
    "ExportDocument",
]
