"""Periodic reconciliation between the record store and the search index."""

import asyncio
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from archive.content.database import utc_now
from archive.content.repositories.records import RecordRepository
from archive.content.repositories.sync_config import SyncConfigRepository
from archive.content.schemas import OperationKind
from archive.indexing.queue import DurableQueue
from archive.lifecycle import GracefulShutdown
from archive.search.adapter import SearchAdapter

logger = structlog.get_logger()


class SweepReport(BaseModel):
    """Drift found by one sweep."""

    missing_from_index: list[str]
    orphaned_in_index: list[str]
    held_back: list[str] = Field(default_factory=list)


class ReconciliationSweeper:
    """Diffs the full id sets of both stores and queues corrective work.

    The diff holds both id sets in memory. That is fine for a personal
    archive; a much larger catalog would need a changed-since cursor
    (see ``RecordRepository.list_changed_since``).
    """

    def __init__(
        self,
        queue: DurableQueue,
        records: RecordRepository,
        sync_config: SyncConfigRepository,
        adapter: SearchAdapter,
        shutdown: GracefulShutdown,
        initial_delay_seconds: float = 60.0,
        fallback_delay_seconds: float = 300.0,
    ) -> None:
        """Initialize sweeper.

        Args:
            queue: Queue receiving corrective operations.
            records: Record store.
            sync_config: Source of the sweep interval.
            adapter: Search engine adapter.
            shutdown: Shared shutdown signal.
            initial_delay_seconds: Quiet period before the first sweep.
            fallback_delay_seconds: Pause when the interval cannot be read.
        """
        self._queue = queue
        self._records = records
        self._sync_config = sync_config
        self._adapter = adapter
        self._shutdown = shutdown
        self._initial_delay = initial_delay_seconds
        self._fallback_delay = fallback_delay_seconds
        self._last_sweep_at: datetime | None = None

    async def run(self) -> None:
        """Sweep on the configured interval until shutdown."""
        logger.info("search_sweeper_started")

        try:
            if await self._shutdown.sleep(self._initial_delay):
                logger.info("search_sweeper_stopped")
                return

            while not self._shutdown.is_triggered:
                try:
                    config = await asyncio.to_thread(self._sync_config.get)
                    await self.sweep()
                    delay = config.sync_interval_minutes * 60.0
                except Exception:
                    logger.exception("search_sweep_cycle_failed")
                    delay = self._fallback_delay
                await self._shutdown.sleep(delay)
        except asyncio.CancelledError:
            logger.info("search_sweeper_cancelled")
            raise

        logger.info("search_sweeper_stopped")

    async def sweep(self) -> SweepReport | None:
        """Run one reconciliation pass.

        Queues an index operation for every record missing from the index
        and a delete operation for every indexed id without a record.
        Subjects whose same operation was dead-lettered since the previous
        pass are held back for one interval, so a permanently rejected
        record adds at most one row every other sweep.

        Returns:
            The drift found, or None if the pass failed.
        """
        logger.info("search_sweep_started")
        started_at = utc_now()
        try:
            record_ids = set(await asyncio.to_thread(self._records.list_all_ids))
            index_ids = set(await asyncio.to_thread(self._adapter.list_all_indexed_ids))
            recently_dead = (
                await self._queue.dead_since(self._last_sweep_at)
                if self._last_sweep_at is not None
                else set()
            )
        except Exception:
            logger.exception("search_sweep_failed")
            return None

        missing = sorted(record_ids - index_ids)
        orphaned = sorted(index_ids - record_ids)
        corrections = [(OperationKind.INDEX, sid) for sid in missing] + [
            (OperationKind.DELETE, sid) for sid in orphaned
        ]
        report = SweepReport(
            missing_from_index=missing,
            orphaned_in_index=orphaned,
            held_back=sorted(
                {sid for kind, sid in corrections if (kind, sid) in recently_dead}
            ),
        )
        logger.info(
            "search_sweep_drift",
            missing_from_index=len(report.missing_from_index),
            orphaned_in_index=len(report.orphaned_in_index),
            held_back=len(report.held_back),
        )

        for kind, subject_id in corrections:
            if (kind, subject_id) not in recently_dead:
                await self._queue.enqueue(kind, subject_id)

        self._last_sweep_at = started_at
        logger.info("search_sweep_completed")
        return report
