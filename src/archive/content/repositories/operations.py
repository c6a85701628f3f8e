"""Persistence for pending search index operations."""

import sqlite3
from datetime import datetime

from archive.content.database import Database, from_db_time, to_db_time, utc_now
from archive.content.schemas import Operation, OperationKind

_COLUMNS = (
    "id, kind, subject_id, retry_count, created_at, last_attempt_at, last_error"
)


def _to_operation(row: sqlite3.Row) -> Operation:
    created_at = from_db_time(row["created_at"])
    assert created_at is not None
    return Operation(
        id=row["id"],
        kind=OperationKind(row["kind"]),
        subject_id=row["subject_id"],
        retry_count=row["retry_count"],
        created_at=created_at,
        last_attempt_at=from_db_time(row["last_attempt_at"]),
        last_error=row["last_error"],
    )


class OperationRepository:
    """Table of operations that have not been applied to the index yet.

    A row exists from enqueue until the dispatcher applies it. Rows whose
    ``retry_count`` reached the retry cap stay behind as dead letters.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    def add(
        self,
        kind: OperationKind,
        subject_id: str,
        created_at: datetime | None = None,
    ) -> Operation:
        """Persist a new operation with a zero retry count."""
        created = created_at or utc_now()
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO search_index_operations "
                "(kind, subject_id, retry_count, created_at) VALUES (?, ?, 0, ?)",
                (kind.value, subject_id, to_db_time(created)),
            )
            row_id = cursor.lastrowid
        assert row_id is not None
        return Operation(
            id=row_id, kind=kind, subject_id=subject_id, created_at=created
        )

    def find_live(
        self, subject_id: str, kind: OperationKind, max_retries: int
    ) -> Operation | None:
        """Return the oldest retryable operation for a subject and kind."""
        with self._db.transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM search_index_operations "
                "WHERE subject_id = ? AND kind = ? AND retry_count < ? "
                "ORDER BY created_at, id LIMIT 1",
                (subject_id, kind.value, max_retries),
            ).fetchone()
        return _to_operation(row) if row else None

    def get(self, operation_id: int) -> Operation | None:
        """Return an operation by row id."""
        with self._db.transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM search_index_operations WHERE id = ?",
                (operation_id,),
            ).fetchone()
        return _to_operation(row) if row else None

    def record_failure(self, operation_id: int, error: str) -> Operation | None:
        """Increment the retry count and store the failure details.

        Returns:
            The updated operation, or None if the row no longer exists.
        """
        with self._db.transaction() as conn:
            conn.execute(
                "UPDATE search_index_operations "
                "SET retry_count = retry_count + 1, last_attempt_at = ?, last_error = ? "
                "WHERE id = ?",
                (to_db_time(utc_now()), error, operation_id),
            )
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM search_index_operations WHERE id = ?",
                (operation_id,),
            ).fetchone()
        return _to_operation(row) if row else None

    def delete(self, operation_id: int) -> None:
        """Remove an applied operation."""
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM search_index_operations WHERE id = ?", (operation_id,)
            )

    def list_retryable(self, max_retries: int, limit: int) -> list[Operation]:
        """Return operations below the retry cap, oldest first."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM search_index_operations "
                "WHERE retry_count < ? ORDER BY created_at, id LIMIT ?",
                (max_retries, limit),
            ).fetchall()
        return [_to_operation(row) for row in rows]

    def list_dead_letters(self, max_retries: int, limit: int) -> list[Operation]:
        """Return exhausted operations, most recent attempt first."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM search_index_operations "
                "WHERE retry_count >= ? ORDER BY last_attempt_at DESC, id DESC LIMIT ?",
                (max_retries, limit),
            ).fetchall()
        return [_to_operation(row) for row in rows]

    def list_dead_since(
        self, max_retries: int, since: datetime
    ) -> set[tuple[OperationKind, str]]:
        """Return (kind, subject_id) pairs dead-lettered after ``since``."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT DISTINCT kind, subject_id FROM search_index_operations "
                "WHERE retry_count >= ? AND last_attempt_at > ?",
                (max_retries, to_db_time(since)),
            ).fetchall()
        return {(OperationKind(row["kind"]), row["subject_id"]) for row in rows}

    def count(self) -> int:
        """Return the number of stored operations, dead letters included."""
        with self._db.transaction() as conn:
            return int(
                conn.execute("SELECT COUNT(*) FROM search_index_operations").fetchone()[0]
            )
