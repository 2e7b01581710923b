"""Shared fixtures: a real local store and an in-memory remote store."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from possync.client.store import LocalStore
from possync.sync.engine import SyncEngine
from tests.helpers import InMemoryRemote


@pytest.fixture
def remote() -> InMemoryRemote:
    """Create an empty in-memory remote store."""
    return InMemoryRemote()


@pytest.fixture
def store(tmp_path: Path) -> Generator[LocalStore, None, None]:
    """Create a local store with the full schema."""
    s = LocalStore(tmp_path / "pos.db", create_schema=True)
    yield s
    s.close()


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    """Create an empty image directory."""
    path = tmp_path / "images"
    path.mkdir()
    return path


@pytest.fixture
def engine(store: LocalStore, remote: InMemoryRemote, asset_dir: Path) -> SyncEngine:
    """Create a sync engine wired to the in-memory remote."""
    return SyncEngine(store, asset_dir=asset_dir, client=remote)  # type: ignore[arg-type]
