"""Background consumer applying queued operations to the search index."""

import asyncio

import structlog

from archive.content.repositories.operations import OperationRepository
from archive.content.repositories.records import RecordRepository
from archive.content.schemas import Operation, OperationKind
from archive.indexing.queue import DurableQueue, QueueItem
from archive.lifecycle import GracefulShutdown
from archive.search.adapter import SearchAdapter
from archive.search.schemas import build_document

logger = structlog.get_logger()


def backoff_seconds(retry_count: int, base: float = 1.0) -> float:
    """Delay before the next attempt after ``retry_count`` failures."""
    return base * (2**retry_count)


class Dispatcher:
    """Single reader of the durable queue and sole writer to the index.

    Each notification is resolved against the operation table, so a
    duplicate notification for an already applied operation is a no-op.
    Failed attempts are retried with exponential backoff until the retry
    cap, after which the row is left in place as a dead letter.
    """

    def __init__(
        self,
        queue: DurableQueue,
        operations: OperationRepository,
        records: RecordRepository,
        adapter: SearchAdapter,
        shutdown: GracefulShutdown,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        fault_delay_seconds: float = 5.0,
    ) -> None:
        """Initialize dispatcher.

        Args:
            queue: Queue to drain.
            operations: Persisted operation rows.
            records: Record store used to build documents.
            adapter: Search engine adapter.
            shutdown: Shared shutdown signal.
            max_retries: Failed attempts before an operation is dead-lettered.
            backoff_base_seconds: Multiplier for the 2^n backoff.
            fault_delay_seconds: Pause after an unexpected loop fault.
        """
        self._queue = queue
        self._operations = operations
        self._records = records
        self._adapter = adapter
        self._shutdown = shutdown
        self._max_retries = max_retries
        self._backoff_base = backoff_base_seconds
        self._fault_delay = fault_delay_seconds

    async def run(self) -> None:
        """Drain the queue until shutdown.

        Republishes stored operations first, then processes notifications
        one at a time. Unexpected faults are logged and followed by a short
        pause; only shutdown or task cancellation ends the loop.
        """
        logger.info("search_dispatcher_started")
        await self._queue.recover_pending()

        try:
            while not self._shutdown.is_triggered:
                try:
                    item = await self._queue.dequeue(self._shutdown)
                    if item is None:
                        continue
                    await self.process_item(item)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("search_dispatcher_fault")
                    await self._shutdown.sleep(self._fault_delay)
        except asyncio.CancelledError:
            logger.info("search_dispatcher_cancelled")
            raise

        logger.info("search_dispatcher_stopped")

    async def process_item(self, item: QueueItem) -> None:
        """Apply one queued operation, handling failure and retry.

        Args:
            item: Notification taken from the queue.
        """
        operation = await asyncio.to_thread(
            self._operations.find_live,
            item.subject_id,
            item.kind,
            self._max_retries,
        )
        if operation is None:
            logger.debug(
                "search_operation_missing",
                kind=item.kind.value,
                subject_id=item.subject_id,
            )
            return

        try:
            await self._apply(operation)
        except Exception as e:
            await self._handle_failure(operation, item, e)
            return

        try:
            await asyncio.to_thread(self._operations.delete, operation.id)
        except Exception:
            # Applied but still stored; only startup recovery will see it again.
            logger.exception(
                "search_operation_stranded",
                operation_id=operation.id,
                kind=operation.kind.value,
                subject_id=operation.subject_id,
            )
            raise

    async def _apply(self, operation: Operation) -> None:
        if operation.kind == OperationKind.INDEX:
            record = await asyncio.to_thread(
                self._records.get_by_id, operation.subject_id
            )
            if record is None:
                # Deleted after the operation was queued; its delete reconciles.
                logger.warning("search_record_missing", subject_id=operation.subject_id)
                return
            await asyncio.to_thread(self._adapter.index_document, build_document(record))
            logger.info("search_document_indexed", subject_id=operation.subject_id)
        else:
            await asyncio.to_thread(self._adapter.delete_document, operation.subject_id)
            logger.info("search_document_removed", subject_id=operation.subject_id)

    async def _handle_failure(
        self, operation: Operation, item: QueueItem, error: Exception
    ) -> None:
        updated = await asyncio.to_thread(
            self._operations.record_failure, operation.id, str(error) or repr(error)
        )
        if updated is None:
            return

        logger.warning(
            "search_operation_failed",
            kind=updated.kind.value,
            subject_id=updated.subject_id,
            retry_count=updated.retry_count,
            error=updated.last_error,
        )

        if updated.retry_count >= self._max_retries:
            logger.error(
                "search_operation_dead_lettered",
                kind=updated.kind.value,
                subject_id=updated.subject_id,
                retry_count=updated.retry_count,
            )
            return

        delay = backoff_seconds(updated.retry_count, self._backoff_base)
        if await self._shutdown.sleep(delay):
            # Row stays as persisted; startup recovery picks it up again.
            return
        await self._queue.publish(item)
