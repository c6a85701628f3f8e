"""SQLite repositories for records, index operations and sweep settings."""

from archive.content.repositories.operations import OperationRepository
from archive.content.repositories.records import RecordRepository
from archive.content.repositories.sync_config import SyncConfigRepository

__all__ = [
    "OperationRepository",
    "RecordRepository",
    "SyncConfigRepository",
]
