"""Archive record store and index bookkeeping tables."""

from archive.content.database import Database
from archive.content.schemas import (
    ArchiveRecord,
    Creator,
    Operation,
    OperationKind,
    RecordCreate,
    SyncConfiguration,
)

__all__ = [
    "ArchiveRecord",
    "Creator",
    "Database",
    "Operation",
    "OperationKind",
    "RecordCreate",
    "SyncConfiguration",
]
