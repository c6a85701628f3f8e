"""SQLite connection shared by the archive repositories."""

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS creators (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS videos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_id TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    creator_id INTEGER REFERENCES creators(id),
    created_at TEXT NOT NULL,
    added_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS video_tags (
    video_id INTEGER NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (video_id, tag_id)
);

CREATE TABLE IF NOT EXISTS search_index_operations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    retry_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    last_attempt_at TEXT,
    last_error TEXT
);

CREATE INDEX IF NOT EXISTS ix_operations_subject_kind
    ON search_index_operations (subject_id, kind);

CREATE INDEX IF NOT EXISTS ix_operations_created_at
    ON search_index_operations (created_at);

CREATE TABLE IF NOT EXISTS search_index_configuration (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    sync_interval_minutes INTEGER NOT NULL,
    last_modified TEXT NOT NULL
);
"""


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_db_time(value: datetime) -> str:
    """Serialize a datetime as ISO 8601 in UTC so text ordering is time ordering."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    """Parse a stored timestamp, passing NULL through."""
    if value is None:
        return None
    return datetime.fromisoformat(value)


class Database:
    """File-backed SQLite connection guarded by a lock.

    Repositories are synchronous and are called from worker threads via
    ``asyncio.to_thread``, so the connection is opened with
    ``check_same_thread=False`` and every statement runs under the lock.
    """

    def __init__(self, path: str) -> None:
        """Initialize database wrapper (call initialize() before use).

        Args:
            path: SQLite file path, or ":memory:".
        """
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Open the connection and create missing tables."""
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("database_initialized", path=self.path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements atomically under the connection lock.

        Commits on normal exit and rolls back if the block raises.

        Yields:
            The underlying connection.
        """
        with self._lock:
            if self._conn is None:
                raise RuntimeError("Database is not initialized")
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.transaction() as conn:
                conn.execute("SELECT 1").fetchone()
        except (sqlite3.Error, RuntimeError):
            return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("database_closed", path=self.path)
