"""Durable queue tests."""

import asyncio
import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from archive.content.repositories import OperationRepository
from archive.content.schemas import OperationKind
from archive.indexing.queue import DurableQueue, QueueItem
from archive.lifecycle import GracefulShutdown


@pytest.mark.asyncio
async def test_enqueue_persists_then_publishes(
    queue: DurableQueue, operations: OperationRepository
) -> None:
    """Enqueued operations land in the table and in the channel."""
    assert await queue.enqueue(OperationKind.INDEX, "v1") is True

    assert operations.count() == 1
    stored = operations.find_live("v1", OperationKind.INDEX, max_retries=3)
    assert stored is not None
    assert stored.retry_count == 0
    assert stored.last_attempt_at is None
    assert queue.in_memory_count == 1

    item = await queue.dequeue(GracefulShutdown())
    assert item == QueueItem(kind=OperationKind.INDEX, subject_id="v1")


@pytest.mark.asyncio
async def test_enqueue_swallows_persistence_failure(
    queue: DurableQueue,
    operations: OperationRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failed insert is logged, not raised, and nothing is published."""

    def broken_add(*args: object, **kwargs: object) -> None:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(operations, "add", broken_add)

    assert await queue.enqueue(OperationKind.DELETE, "v1") is False
    assert queue.in_memory_count == 0


@pytest.mark.asyncio
async def test_dequeue_returns_none_on_shutdown(queue: DurableQueue) -> None:
    """A waiting consumer is released when shutdown fires."""
    shutdown = GracefulShutdown()
    asyncio.get_running_loop().call_later(0.01, shutdown.trigger)

    assert await asyncio.wait_for(queue.dequeue(shutdown), timeout=1.0) is None


@pytest.mark.asyncio
async def test_dequeue_after_shutdown_returns_none_immediately(
    queue: DurableQueue,
) -> None:
    """Items are not handed out once shutdown has been triggered."""
    await queue.enqueue(OperationKind.INDEX, "v1")
    shutdown = GracefulShutdown()
    shutdown.trigger()

    assert await queue.dequeue(shutdown) is None
    assert queue.in_memory_count == 1


@pytest.mark.asyncio
async def test_recover_pending_republishes_oldest_first(
    queue: DurableQueue, operations: OperationRepository
) -> None:
    """Stored operations come back in created_at order after a restart."""
    base = datetime(2025, 1, 1, tzinfo=UTC)
    for offset, subject_id in [(3, "c"), (1, "a"), (5, "e"), (2, "b"), (4, "d")]:
        operations.add(
            OperationKind.INDEX, subject_id, created_at=base + timedelta(minutes=offset)
        )

    assert queue.in_memory_count == 0
    assert await queue.recover_pending() == 5

    shutdown = GracefulShutdown()
    recovered = [(await queue.dequeue(shutdown)).subject_id for _ in range(5)]
    assert recovered == ["a", "b", "c", "d", "e"]


@pytest.mark.asyncio
async def test_recover_pending_skips_dead_letters(
    queue: DurableQueue, operations: OperationRepository
) -> None:
    """Operations at the retry cap stay out of the dispatch path."""
    live = operations.add(OperationKind.INDEX, "live")
    dead = operations.add(OperationKind.DELETE, "dead")
    for _ in range(3):
        operations.record_failure(dead.id, "boom")

    assert await queue.recover_pending() == 1
    item = await queue.dequeue(GracefulShutdown())
    assert item is not None
    assert item.subject_id == live.subject_id
    assert queue.in_memory_count == 0


@pytest.mark.asyncio
async def test_recover_pending_is_bounded(operations: OperationRepository) -> None:
    """Recovery republishes at most one batch."""
    queue = DurableQueue(operations, max_retries=3, recovery_batch_size=2)
    for subject_id in ["a", "b", "c"]:
        operations.add(OperationKind.INDEX, subject_id)

    assert await queue.recover_pending() == 2
    assert queue.in_memory_count == 2


@pytest.mark.asyncio
async def test_pending_count_includes_dead_letters(
    queue: DurableQueue, operations: OperationRepository
) -> None:
    """pending_count reports every stored row."""
    await queue.enqueue(OperationKind.INDEX, "a")
    dead = operations.add(OperationKind.INDEX, "b")
    for _ in range(3):
        operations.record_failure(dead.id, "boom")

    assert await queue.pending_count() == 2


@pytest.mark.asyncio
async def test_concurrent_producers_never_block(
    queue: DurableQueue, operations: OperationRepository
) -> None:
    """Many producers can enqueue at once without a consumer running."""
    await asyncio.gather(
        *(queue.enqueue(OperationKind.INDEX, f"v{i}") for i in range(50))
    )

    assert operations.count() == 50
    assert queue.in_memory_count == 50
