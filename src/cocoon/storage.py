"""Durable persistence for the vault container and master verifier.

Pure file I/O: no cryptography happens here. Every write goes to a
temporary file in the target directory which is fsynced and then renamed
over the destination, so readers only ever see a complete old or a
complete new file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from .config import VAULT_FILENAME, VERIFIER_FILENAME
from .exceptions import (
    FormatError,
    SerializationError,
    StorageError,
    StoragePermissionError,
    UnsupportedVersionError,
    VaultNotFoundError,
)
from .parsing.container import EncryptedPasswordStore

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` without exposing a partial file.

    Raises:
        StoragePermissionError: If the directory or file isn't writable
        StorageError: For any other OS-level failure
    """
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if os.name == "posix":
            os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
        tmp_name = None
    except PermissionError as e:
        raise StoragePermissionError(f"Permission denied writing {path}") from e
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e.strerror}") from e
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise VaultNotFoundError(f"File not found: {path}") from e
    except PermissionError as e:
        raise StoragePermissionError(f"Permission denied reading {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to read {path}") from e


class VaultStore:
    """Reads and writes the two paired vault files.

    The container (``vault.json``) and the master verifier
    (``master.hash``) live side by side in ``data_dir`` but are separate
    files, so rotating the verifier never rewrites container metadata.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def vault_path(self) -> Path:
        return self._data_dir / VAULT_FILENAME

    @property
    def verifier_path(self) -> Path:
        return self._data_dir / VERIFIER_FILENAME

    # --- Container ---

    def exists(self) -> bool:
        """Whether a vault container has been written."""
        return self.vault_path.is_file()

    def load(self, default: EncryptedPasswordStore | None = None) -> EncryptedPasswordStore:
        """Read and parse the vault container.

        Args:
            default: Returned when the file does not exist. Only "no vault
                yet" flows pass one; authenticated flows leave it None so a
                missing file is a hard error.

        Raises:
            VaultNotFoundError: File missing and no default given
            SerializationError: File is not a valid container
            StoragePermissionError: File isn't readable
        """
        if not self.vault_path.exists() and default is not None:
            logger.debug("No vault at %s, using default container", self.vault_path)
            return default
        text = _read_text(self.vault_path)
        try:
            return EncryptedPasswordStore.from_json(text)
        except UnsupportedVersionError:
            raise
        except FormatError as e:
            raise SerializationError(f"Invalid vault container: {e}") from e

    def save(self, container: EncryptedPasswordStore) -> None:
        """Overwrite the whole container file."""
        try:
            content = container.to_json()
        except (TypeError, ValueError) as e:
            raise SerializationError("Could not serialize vault container") from e
        atomic_write_text(self.vault_path, content)
        logger.debug("Saved vault container to %s", self.vault_path)

    # --- Verifier ---

    def has_verifier(self) -> bool:
        """Whether a master password has been set up."""
        try:
            return self.verifier_path.is_file() and self.verifier_path.stat().st_size > 0
        except OSError:
            return False

    def load_verifier(self) -> str:
        """Read the master verifier.

        Raises:
            VaultNotFoundError: No master password has been set up
        """
        verifier = _read_text(self.verifier_path).strip()
        if not verifier:
            raise VaultNotFoundError("Master verifier is empty")
        return verifier

    def save_verifier(self, verifier: str) -> None:
        atomic_write_text(self.verifier_path, verifier)
        logger.debug("Saved master verifier to %s", self.verifier_path)

    # --- Maintenance ---

    def delete(self) -> None:
        """Remove both vault files if present."""
        for path in (self.vault_path, self.verifier_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to delete {path}") from e

    def __repr__(self) -> str:
        return f"VaultStore({str(self._data_dir)!r})"
