"""Runtime settings for a vault instance."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from .security.kdf import Argon2Config

APP_NAME = "cocoon-password-manager"
DATA_DIR_ENV = "COCOON_DATA_DIR"

VAULT_FILENAME = "vault.json"
VERIFIER_FILENAME = "master.hash"


def default_data_dir() -> Path:
    """Per-user application data directory.

    ``$COCOON_DATA_DIR`` wins when set; otherwise the platform's local
    application data location is used.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / APP_NAME


@dataclass(frozen=True)
class VaultSettings:
    """Settings for a vault instance.

    Attributes:
        data_dir: Directory holding the vault container and verifier
        session_timeout: Idle time after which the session locks
        max_failed_attempts: Failed unlocks before lockout
        lockout_duration: How long authentication is refused after lockout
        sweep_interval: Period of the background idle-timeout sweep
        clipboard_clear_delay: Delay before a copied secret is cleared
        argon2: Cost parameters for new verifiers (must meet the minimums
            checked by Argon2Config.validate_security)
    """

    data_dir: Path = field(default_factory=default_data_dir)
    session_timeout: timedelta = timedelta(minutes=5)
    max_failed_attempts: int = 5
    lockout_duration: timedelta = timedelta(minutes=5)
    sweep_interval: timedelta = timedelta(seconds=60)
    clipboard_clear_delay: timedelta = timedelta(seconds=30)
    argon2: Argon2Config = field(default_factory=Argon2Config.default)

    def __post_init__(self) -> None:
        if self.max_failed_attempts < 1:
            raise ValueError("max_failed_attempts must be at least 1")
        if self.session_timeout <= timedelta(0):
            raise ValueError("session_timeout must be positive")
        if self.sweep_interval <= timedelta(0):
            raise ValueError("sweep_interval must be positive")
        self.argon2.validate_security()

    @property
    def vault_path(self) -> Path:
        return Path(self.data_dir) / VAULT_FILENAME

    @property
    def verifier_path(self) -> Path:
        return Path(self.data_dir) / VERIFIER_FILENAME

    @classmethod
    def for_testing(cls, data_dir: str | Path) -> VaultSettings:
        """Settings with the fast Argon2 preset, for tests only."""
        return cls(data_dir=Path(data_dir), argon2=Argon2Config.fast())
