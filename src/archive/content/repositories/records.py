"""Archive record store: videos with their creator and tags."""

import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog

from archive.content.database import Database, from_db_time, to_db_time, utc_now
from archive.content.schemas import ArchiveRecord, Creator, RecordCreate

logger = structlog.get_logger()

_SELECT_RECORDS = """
    SELECT v.id, v.subject_id, v.description, v.created_at, v.added_at,
           v.updated_at, c.external_id AS creator_id,
           c.display_name AS creator_name
    FROM videos v
    LEFT JOIN creators c ON c.id = v.creator_id
"""

# Keeps IN (...) lists under SQLite's host parameter limit.
_ID_CHUNK = 500


class RecordRepository:
    """Read and write access to archive records.

    The indexing core only needs lookups by subject id, the full id set and
    batched hydration. Writes exist for the record mutation path.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    def get_by_id(self, subject_id: str) -> ArchiveRecord | None:
        """Fetch one record with its creator and tags.

        Args:
            subject_id: External record id.

        Returns:
            The record, or None if it does not exist.
        """
        records = self.get_by_ids([subject_id])
        return records[0] if records else None

    def get_by_ids(self, subject_ids: Sequence[str]) -> list[ArchiveRecord]:
        """Fetch many records in batched queries.

        The result order is whatever SQLite returns; callers that need a
        specific order must re-sort.

        Args:
            subject_ids: External record ids. Unknown ids are ignored.

        Returns:
            Records that exist.
        """
        unique_ids = list(dict.fromkeys(subject_ids))
        records: list[ArchiveRecord] = []
        with self._db.transaction() as conn:
            for start in range(0, len(unique_ids), _ID_CHUNK):
                chunk = unique_ids[start : start + _ID_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"{_SELECT_RECORDS} WHERE v.subject_id IN ({placeholders})",
                    chunk,
                ).fetchall()
                records.extend(self._hydrate(conn, rows))
        return records

    def list_all_ids(self) -> list[str]:
        """Return every subject id in the archive."""
        with self._db.transaction() as conn:
            rows = conn.execute("SELECT subject_id FROM videos").fetchall()
        return [row["subject_id"] for row in rows]

    def list_changed_since(self, since: datetime) -> list[str]:
        """Return subject ids written after ``since``, oldest change first."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT subject_id FROM videos WHERE updated_at > ? "
                "ORDER BY updated_at",
                (to_db_time(since),),
            ).fetchall()
        return [row["subject_id"] for row in rows]

    def count(self) -> int:
        """Return the number of records."""
        with self._db.transaction() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM videos").fetchone()[0])

    def list_page(self, offset: int, limit: int) -> list[ArchiveRecord]:
        """Return records in primary key order, for batched full scans."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                f"{_SELECT_RECORDS} ORDER BY v.id LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            return self._hydrate(conn, rows)

    def upsert(self, data: RecordCreate) -> ArchiveRecord:
        """Insert a record, or replace the existing one with the same id.

        A replacement without ``created_at`` keeps the stored publish time.

        Args:
            data: Record fields from the caller.

        Returns:
            The stored record.
        """
        now = utc_now()
        given_created_at = to_db_time(data.created_at) if data.created_at else None
        with self._db.transaction() as conn:
            creator_pk = None
            if data.creator_id:
                conn.execute(
                    "INSERT INTO creators (external_id, display_name) VALUES (?, ?) "
                    "ON CONFLICT(external_id) DO UPDATE SET "
                    "display_name = excluded.display_name",
                    (data.creator_id, data.creator_name or ""),
                )
                creator_pk = conn.execute(
                    "SELECT id FROM creators WHERE external_id = ?",
                    (data.creator_id,),
                ).fetchone()["id"]

            conn.execute(
                """
                INSERT INTO videos
                    (subject_id, description, creator_id, created_at, added_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(subject_id) DO UPDATE SET
                    description = excluded.description,
                    creator_id = excluded.creator_id,
                    created_at = COALESCE(?, videos.created_at),
                    updated_at = excluded.updated_at
                """,
                (
                    data.subject_id,
                    data.description,
                    creator_pk,
                    given_created_at or to_db_time(now),
                    to_db_time(now),
                    to_db_time(now),
                    given_created_at,
                ),
            )
            video_pk = conn.execute(
                "SELECT id FROM videos WHERE subject_id = ?", (data.subject_id,)
            ).fetchone()["id"]
            self._replace_tags(conn, video_pk, data.tags)

        logger.debug("record_upserted", subject_id=data.subject_id)
        record = self.get_by_id(data.subject_id)
        assert record is not None
        return record

    def delete(self, subject_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was removed.
        """
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM videos WHERE subject_id = ?", (subject_id,)
            )
        return cursor.rowcount > 0

    def _replace_tags(
        self, conn: sqlite3.Connection, video_pk: int, tags: Iterable[str]
    ) -> None:
        conn.execute("DELETE FROM video_tags WHERE video_id = ?", (video_pk,))
        names = list(dict.fromkeys(t.strip() for t in tags if t.strip()))
        for name in names:
            conn.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (name,))
            tag_pk = conn.execute(
                "SELECT id FROM tags WHERE name = ?", (name,)
            ).fetchone()["id"]
            conn.execute(
                "INSERT OR IGNORE INTO video_tags (video_id, tag_id) VALUES (?, ?)",
                (video_pk, tag_pk),
            )

    def _hydrate(
        self, conn: sqlite3.Connection, rows: list[sqlite3.Row]
    ) -> list[ArchiveRecord]:
        """Attach tags to video rows and build records."""
        if not rows:
            return []

        video_pks = [row["id"] for row in rows]
        placeholders = ",".join("?" for _ in video_pks)
        tag_rows = conn.execute(
            f"""
            SELECT vt.video_id, t.name
            FROM video_tags vt JOIN tags t ON t.id = vt.tag_id
            WHERE vt.video_id IN ({placeholders})
            ORDER BY t.name
            """,
            video_pks,
        ).fetchall()
        tags_by_video: dict[int, list[str]] = {}
        for tag_row in tag_rows:
            tags_by_video.setdefault(tag_row["video_id"], []).append(tag_row["name"])

        records: list[ArchiveRecord] = []
        for row in rows:
            creator = None
            if row["creator_id"] is not None:
                creator = Creator(
                    external_id=row["creator_id"],
                    display_name=row["creator_name"] or "",
                )
            records.append(
                ArchiveRecord(
                    subject_id=row["subject_id"],
                    description=row["description"],
                    creator=creator,
                    tags=tags_by_video.get(row["id"], []),
                    created_at=from_db_time(row["created_at"]),
                    added_at=from_db_time(row["added_at"]),
                    updated_at=from_db_time(row["updated_at"]),
                )
            )
        return records
