"""Pytest configuration and shared fixtures."""

import gc
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from roomsync.adapters.sqlite import (
    SQLiteSessionRepository,
    SQLiteSubscriptionStore,
    init_database,
)
from roomsync.domain.entities import Session
from tests.helpers.fakes import SYNC_TIME, FakeLegacyChannel, FakeTransport

# ============================================================================
# Config isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config lookup at an empty directory.

    Keeps a developer's ~/.config/roomsync/config.toml out of test runs.
    """
    config_home = tmp_path / "xdg_config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home / "roomsync" / "config.toml"


# ============================================================================
# Store fixtures
# ============================================================================


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Create an initialized store database."""
    path = tmp_path / "store.db"
    init_database(path)
    return path


@pytest.fixture
def store(db_path: Path):
    """SQLiteSubscriptionStore on a fresh database, closed after the test."""
    repo = SQLiteSubscriptionStore(db_path)
    yield repo
    repo.close()


@pytest.fixture
def sessions(db_path: Path):
    """SQLiteSessionRepository on a fresh database, closed after the test."""
    repo = SQLiteSessionRepository(db_path)
    yield repo
    repo.close()


@pytest.fixture
def session(sessions: SQLiteSessionRepository) -> Session:
    """A current session that has never synced."""
    current = Session(
        id="alice@chat.example.com",
        user_id="alice",
        server_url="https://chat.example.com",
        token="secret-token",
        is_current=True,
    )
    sessions.add(current)
    return current


# ============================================================================
# Fake ports
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def legacy() -> FakeLegacyChannel:
    return FakeLegacyChannel()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock frozen at SYNC_TIME."""
    return lambda: SYNC_TIME


# ============================================================================
# Resource Cleanup
# ============================================================================


@pytest.fixture(autouse=True)
def cleanup_database_connections():
    """Force garbage collection after each test to close lingering connections.

    Repositories that are not closed explicitly keep their SQLite
    connection until collected, which produces ResourceWarnings at exit.
    """
    yield
    gc.collect()
