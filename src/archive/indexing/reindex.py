"""Full-catalog reindex sessions with pollable progress."""

import asyncio
import threading
import time
import uuid
from collections.abc import Iterator
from datetime import datetime

import structlog
from pydantic import BaseModel, computed_field

from archive.content.database import utc_now
from archive.content.repositories.records import RecordRepository
from archive.search.adapter import SearchAdapter
from archive.search.schemas import IndexedDocument, build_document

logger = structlog.get_logger()


class ReindexCancelled(Exception):
    """Raised inside the document stream when a session is stopped."""


class ReindexProgress(BaseModel):
    """Progress of one bulk reindex session.

    Attributes:
        session_id: Token returned when the session started.
        is_running: Whether the session is still working.
        processed_count: Documents submitted so far.
        total_count: Records counted when the session started.
        started_at: Session start time.
        completed_at: Time the session finished successfully.
        error_message: Failure or cancellation reason.
    """

    session_id: str
    is_running: bool = True
    processed_count: int = 0
    total_count: int = 0
    started_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None

    @computed_field
    @property
    def percentage(self) -> float:
        """Share of records processed, 0 when there is nothing to index."""
        if self.total_count <= 0:
            return 0.0
        return self.processed_count * 100.0 / self.total_count


class _Session:
    def __init__(self, progress: ReindexProgress) -> None:
        self.progress = progress
        self.stop = threading.Event()
        self.task: asyncio.Task[None] | None = None
        self.finished_monotonic: float | None = None


class ReindexService:
    """Runs bulk reindexes and keeps their progress for a while.

    Finished sessions are evicted once they are older than the retention
    window. A reindex does not coordinate with the live queue; a record
    changed mid-run may be written twice, last write wins.
    """

    def __init__(
        self,
        records: RecordRepository,
        adapter: SearchAdapter,
        batch_size: int = 100,
        retention_seconds: float = 3600.0,
    ) -> None:
        """Initialize reindex service.

        Args:
            records: Record store to read in batches.
            adapter: Search engine adapter.
            batch_size: Records read per page.
            retention_seconds: How long finished sessions remain visible.
        """
        self._records = records
        self._adapter = adapter
        self._batch_size = batch_size
        self._retention = retention_seconds
        self._sessions: dict[str, _Session] = {}

    async def start(self) -> str:
        """Start a reindex in the background.

        Returns:
            Session token for polling progress.
        """
        self._evict_expired()
        total = await asyncio.to_thread(self._records.count)
        session_id = str(uuid.uuid4())
        session = _Session(
            ReindexProgress(
                session_id=session_id, total_count=total, started_at=utc_now()
            )
        )
        self._sessions[session_id] = session
        session.task = asyncio.create_task(self._run(session))
        logger.info("search_reindex_started", session_id=session_id, total=total)
        return session_id

    def get(self, session_id: str) -> ReindexProgress | None:
        """Return a snapshot of a session's progress, or None if unknown."""
        self._evict_expired()
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.progress.model_copy()

    @property
    def session_count(self) -> int:
        """Number of sessions currently retained."""
        return len(self._sessions)

    async def shutdown(self) -> None:
        """Stop running sessions after their current batch and wait for them."""
        tasks = []
        for session in self._sessions.values():
            session.stop.set()
            if session.task is not None and not session.task.done():
                tasks.append(session.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, session: _Session) -> None:
        progress = session.progress

        def report(processed: int) -> None:
            progress.processed_count = processed

        try:
            await asyncio.to_thread(
                self._adapter.bulk_index, self._documents(session.stop), report
            )
        except ReindexCancelled:
            progress.error_message = "cancelled"
            logger.info(
                "search_reindex_cancelled",
                session_id=progress.session_id,
                processed=progress.processed_count,
            )
        except Exception as e:
            progress.error_message = str(e)
            logger.exception("search_reindex_failed", session_id=progress.session_id)
        else:
            progress.completed_at = utc_now()
            logger.info(
                "search_reindex_completed",
                session_id=progress.session_id,
                processed=progress.processed_count,
            )
        finally:
            progress.is_running = False
            session.finished_monotonic = time.monotonic()

    def _documents(self, stop: threading.Event) -> Iterator[IndexedDocument]:
        """Stream documents page by page, checking for cancellation between pages."""
        offset = 0
        while True:
            if stop.is_set():
                raise ReindexCancelled()
            page = self._records.list_page(offset, self._batch_size)
            if not page:
                return
            for record in page:
                yield build_document(record)
            offset += len(page)

    def _evict_expired(self) -> None:
        now = time.monotonic()
        expired = [
            sid
            for sid, session in self._sessions.items()
            if session.finished_monotonic is not None
            and now - session.finished_monotonic >= self._retention
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("search_reindex_sessions_evicted", count=len(expired))
