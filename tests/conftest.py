"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from archive.app import create_app
from archive.config import Settings
from archive.content.database import Database
from archive.content.repositories import (
    OperationRepository,
    RecordRepository,
    SyncConfigRepository,
)
from archive.indexing.queue import DurableQueue
from fakes import FakeSearchAdapter, RecordingShutdown


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Database]:
    """Initialized SQLite database in a temp directory."""
    db = Database(str(tmp_path / "archive.db"))
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def records(database: Database) -> RecordRepository:
    return RecordRepository(database)


@pytest.fixture
def operations(database: Database) -> OperationRepository:
    return OperationRepository(database)


@pytest.fixture
def sync_config(database: Database) -> SyncConfigRepository:
    return SyncConfigRepository(database)


@pytest.fixture
def queue(operations: OperationRepository) -> DurableQueue:
    return DurableQueue(operations, max_retries=3, recovery_batch_size=100)


@pytest.fixture
def adapter() -> FakeSearchAdapter:
    return FakeSearchAdapter()


@pytest.fixture
def shutdown() -> RecordingShutdown:
    return RecordingShutdown()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings with background sweeps effectively disabled."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        database_path=str(tmp_path / "app.db"),
        sweep_initial_delay_seconds=3600.0,
        backoff_base_seconds=0.0,
        shutdown_timeout=5.0,
    )


@pytest.fixture
def client(settings: Settings, adapter: FakeSearchAdapter) -> Iterator[TestClient]:
    """Test client with the lifespan running against the fake adapter."""
    app = create_app(settings, search_adapter=adapter)
    with TestClient(app) as test_client:
        yield test_client
