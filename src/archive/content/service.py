"""Record mutation path: write the archive, then queue index work."""

import asyncio

import structlog

from archive.content.repositories.records import RecordRepository
from archive.content.schemas import ArchiveRecord, OperationKind, RecordCreate
from archive.indexing.queue import DurableQueue

logger = structlog.get_logger()


class RecordService:
    """Creates and deletes records and keeps the index informed.

    The record store write is the primary effect. Queueing the matching
    index operation is best effort and never fails the mutation.
    """

    def __init__(self, records: RecordRepository, queue: DurableQueue) -> None:
        self._records = records
        self._queue = queue

    async def get(self, subject_id: str) -> ArchiveRecord | None:
        """Fetch a record by subject id."""
        return await asyncio.to_thread(self._records.get_by_id, subject_id)

    async def save(self, data: RecordCreate) -> ArchiveRecord:
        """Insert or replace a record and queue it for indexing."""
        record = await asyncio.to_thread(self._records.upsert, data)
        logger.info("record_saved", subject_id=record.subject_id)
        await self._queue.enqueue(OperationKind.INDEX, record.subject_id)
        return record

    async def delete(self, subject_id: str) -> bool:
        """Delete a record and queue its removal from the index.

        Returns:
            False if the record did not exist.
        """
        deleted = await asyncio.to_thread(self._records.delete, subject_id)
        if not deleted:
            return False
        logger.info("record_deleted", subject_id=subject_id)
        await self._queue.enqueue(OperationKind.DELETE, subject_id)
        return True
