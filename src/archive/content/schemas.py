"""Pydantic schemas for archive records and index bookkeeping."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Creator(BaseModel):
    """Account that published a video."""

    external_id: str = Field(description="Stable creator handle")
    display_name: str = ""


class ArchiveRecord(BaseModel):
    """Video record as stored in the archive database.

    Attributes:
        subject_id: Stable external id, shared with the search index.
        description: Free-text caption.
        creator: Publishing account, if known.
        tags: Tag names attached to the video.
        created_at: When the video was originally published.
        added_at: When the video was added to the archive.
        updated_at: Last time the record was written.
    """

    subject_id: str
    description: str = ""
    creator: Creator | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    added_at: datetime
    updated_at: datetime


class RecordCreate(BaseModel):
    """Request body for adding or replacing an archive record."""

    subject_id: str = Field(min_length=1, max_length=64)
    description: str = Field(default="", max_length=10000)
    creator_id: str | None = Field(default=None, max_length=100)
    creator_name: str | None = Field(default=None, max_length=200)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class OperationKind(str, Enum):
    """Kind of pending search index work."""

    INDEX = "index"
    DELETE = "delete"


class Operation(BaseModel):
    """Persisted unit of pending index work.

    Attributes:
        id: Row id assigned on persistence.
        kind: Whether the subject should be indexed or deleted.
        subject_id: Record the operation concerns.
        retry_count: Failed attempts so far.
        created_at: First enqueue time.
        last_attempt_at: Time of the last failed attempt.
        last_error: Description of the last failure.
    """

    id: int
    kind: OperationKind
    subject_id: str
    retry_count: int = 0
    created_at: datetime
    last_attempt_at: datetime | None = None
    last_error: str | None = None


class SyncConfiguration(BaseModel):
    """Singleton settings for the reconciliation sweeper."""

    sync_interval_minutes: int = Field(gt=0)
    last_modified: datetime
