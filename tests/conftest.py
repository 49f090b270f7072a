"""Shared fixtures for the cocoon test suite."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from cocoon import Vault, VaultSettings
from cocoon.session import SessionGuard
from cocoon.storage import VaultStore
from cocoon.testing import ManualClock, ManualScheduler

PASSWORD = "correcthorse123"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def settings(tmp_path: Path) -> VaultSettings:
    return VaultSettings.for_testing(tmp_path / "data")


@pytest.fixture
def store(settings: VaultSettings) -> VaultStore:
    return VaultStore(settings.data_dir)


@pytest.fixture
def vault(settings: VaultSettings, scheduler: ManualScheduler) -> Iterator[Vault]:
    """A vault with the master password set up, still locked."""
    with Vault(settings, clock=scheduler.clock, scheduler=scheduler) as v:
        v.setup_master_password(PASSWORD)
        yield v


@pytest.fixture
def unlocked(vault: Vault) -> Vault:
    vault.authenticate(PASSWORD)
    return vault


@pytest.fixture
def guard(vault: Vault) -> SessionGuard:
    return vault.session
