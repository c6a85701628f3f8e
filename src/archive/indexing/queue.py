"""Durable queue of search index operations.

Every operation is written to the ``search_index_operations`` table before
a lightweight notification is published to an in-memory channel. The table
is the source of truth; the channel only wakes the dispatcher. Anything
lost from memory on a crash is picked up again by :meth:`recover_pending`.
"""

import asyncio
from datetime import datetime

import structlog
from pydantic import BaseModel

from archive.content.repositories.operations import OperationRepository
from archive.content.schemas import OperationKind
from archive.lifecycle import GracefulShutdown

logger = structlog.get_logger()


class QueueItem(BaseModel):
    """Notification that an operation for a subject is waiting."""

    kind: OperationKind
    subject_id: str


class DurableQueue:
    """Many-producer, single-consumer queue backed by the operation table.

    The in-memory channel is unbounded so producers on the record write
    path never wait for the dispatcher.
    """

    def __init__(
        self,
        operations: OperationRepository,
        max_retries: int = 3,
        recovery_batch_size: int = 100,
    ) -> None:
        """Initialize queue.

        Args:
            operations: Repository for the persisted operation rows.
            max_retries: Retry cap; rows at or above it are not recovered.
            recovery_batch_size: Maximum rows republished on startup.
        """
        self._operations = operations
        self._max_retries = max_retries
        self._recovery_batch_size = recovery_batch_size
        self._channel: asyncio.Queue[QueueItem] = asyncio.Queue()

    @property
    def in_memory_count(self) -> int:
        """Notifications published but not yet taken by the dispatcher."""
        return self._channel.qsize()

    async def enqueue(self, kind: OperationKind, subject_id: str) -> bool:
        """Persist an operation, then notify the dispatcher.

        Persistence errors are logged and swallowed so record mutations
        never fail because of indexing.

        Args:
            kind: Index or delete.
            subject_id: Record the operation concerns.

        Returns:
            True if the operation was persisted and published.
        """
        try:
            operation = await asyncio.to_thread(
                self._operations.add, kind, subject_id
            )
        except Exception:
            logger.exception(
                "search_enqueue_failed", kind=kind.value, subject_id=subject_id
            )
            return False

        await self.publish(QueueItem(kind=kind, subject_id=subject_id))
        logger.debug(
            "search_operation_enqueued",
            operation_id=operation.id,
            kind=kind.value,
            subject_id=subject_id,
        )
        return True

    async def publish(self, item: QueueItem) -> None:
        """Notify the dispatcher without touching storage."""
        self._channel.put_nowait(item)

    async def dequeue(self, shutdown: GracefulShutdown) -> QueueItem | None:
        """Wait for the next notification.

        Args:
            shutdown: Signal that ends the wait.

        Returns:
            The next item, or None once shutdown is triggered.
        """
        if shutdown.is_triggered:
            return None

        get_task = asyncio.ensure_future(self._channel.get())
        stop_task = asyncio.ensure_future(shutdown.wait_for_trigger())
        try:
            await asyncio.wait(
                {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            if not get_task.done():
                get_task.cancel()

        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        return None

    async def recover_pending(self) -> int:
        """Republish stored operations that never reached the dispatcher.

        Reads rows below the retry cap, oldest first, up to the recovery
        batch size.

        Returns:
            Number of operations republished.
        """
        try:
            pending = await asyncio.to_thread(
                self._operations.list_retryable,
                self._max_retries,
                self._recovery_batch_size,
            )
        except Exception:
            logger.exception("search_recovery_failed")
            return 0

        for operation in pending:
            await self.publish(
                QueueItem(kind=operation.kind, subject_id=operation.subject_id)
            )

        logger.info("search_operations_recovered", count=len(pending))
        return len(pending)

    async def dead_since(self, since: datetime) -> set[tuple[OperationKind, str]]:
        """Operations that exhausted their retries after ``since``."""
        return await asyncio.to_thread(
            self._operations.list_dead_since, self._max_retries, since
        )

    async def pending_count(self) -> int:
        """Number of stored operations, dead letters included."""
        return await asyncio.to_thread(self._operations.count)
