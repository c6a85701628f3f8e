"""Pydantic schemas for indexed documents and search responses."""

from datetime import datetime

from pydantic import BaseModel, Field

from archive.content.schemas import ArchiveRecord


class IndexedDocument(BaseModel):
    """Denormalized projection of a record stored in the search index.

    Attributes:
        subject_id: Record id, also used as the document ``_id``.
        description: Free-text caption.
        creator_name: Creator display name.
        creator_username: Stable creator handle.
        tags: Tag names.
        created_at: Original publish time.
        added_at: Time the record entered the archive (recency sort key).
    """

    subject_id: str
    description: str = ""
    creator_name: str = ""
    creator_username: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    added_at: datetime


def build_document(record: ArchiveRecord) -> IndexedDocument:
    """Project a record into its full search document."""
    return IndexedDocument(
        subject_id=record.subject_id,
        description=record.description or "",
        creator_name=record.creator.display_name if record.creator else "",
        creator_username=record.creator.external_id if record.creator else "",
        tags=list(record.tags),
        created_at=record.created_at,
        added_at=record.added_at,
    )


class QueryHits(BaseModel):
    """Ordered ids returned by the engine for one page of a query."""

    ids: list[str]
    total: int


class SearchPage(BaseModel):
    """Hydrated page of search results.

    Attributes:
        records: Records in engine order.
        total: Total matches reported by the engine.
        page: 1-based page number.
        page_size: Maximum records per page.
    """

    records: list[ArchiveRecord]
    total: int
    page: int
    page_size: int


class SearchResponse(BaseModel):
    """Paginated search response envelope."""

    query: str
    fields: list[str]
    results: list[ArchiveRecord]
    total: int
    page: int
    page_size: int
