"""Shared fixtures for server tests."""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from photosync.server.changes import ChangeSetResolver
from photosync.server.database import Database
from photosync.server.sessions import SessionManager
from photosync.server.storage import LocalFSStorage


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def storage(tmp_path: Path) -> LocalFSStorage:
    """Create a test storage."""
    return LocalFSStorage(tmp_path / "objects")


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def sessions(db: Database, clock: FakeClock) -> SessionManager:
    """Create a session manager on the fake clock."""
    return SessionManager(db, ChangeSetResolver(db), clock=clock)
