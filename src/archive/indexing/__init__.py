"""Index synchronization: durable queue, dispatcher, sweeper and reindex."""

from archive.indexing.dispatcher import Dispatcher, backoff_seconds
from archive.indexing.queue import DurableQueue, QueueItem
from archive.indexing.reindex import ReindexProgress, ReindexService
from archive.indexing.sweeper import ReconciliationSweeper, SweepReport

__all__ = [
    "Dispatcher",
    "DurableQueue",
    "QueueItem",
    "ReconciliationSweeper",
    "ReindexProgress",
    "ReindexService",
    "SweepReport",
    "backoff_seconds",
]
