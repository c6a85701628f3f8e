"""Singleton sweeper configuration row."""

from archive.content.database import Database, from_db_time, to_db_time, utc_now
from archive.content.schemas import SyncConfiguration


class SyncConfigRepository:
    """Reads and writes the single ``search_index_configuration`` row."""

    def __init__(self, database: Database, default_interval_minutes: int = 30) -> None:
        self._db = database
        self._default_interval = default_interval_minutes

    def get(self) -> SyncConfiguration:
        """Return the configuration, creating it with defaults if absent."""
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO search_index_configuration "
                "(id, sync_interval_minutes, last_modified) VALUES (1, ?, ?)",
                (self._default_interval, to_db_time(utc_now())),
            )
            row = conn.execute(
                "SELECT sync_interval_minutes, last_modified "
                "FROM search_index_configuration WHERE id = 1"
            ).fetchone()
        return SyncConfiguration(
            sync_interval_minutes=row["sync_interval_minutes"],
            last_modified=from_db_time(row["last_modified"]),
        )

    def set_interval(self, minutes: int) -> SyncConfiguration:
        """Update the sweep interval and stamp the modification time."""
        if minutes <= 0:
            raise ValueError("sync interval must be positive")
        now = utc_now()
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT INTO search_index_configuration "
                "(id, sync_interval_minutes, last_modified) VALUES (1, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET "
                "sync_interval_minutes = excluded.sync_interval_minutes, "
                "last_modified = excluded.last_modified",
                (minutes, to_db_time(now)),
            )
        return SyncConfiguration(sync_interval_minutes=minutes, last_modified=now)
