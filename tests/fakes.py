"""Test doubles for the search engine and the shutdown signal."""

from collections.abc import Callable, Iterable
from typing import Any

from archive.content.repositories.records import RecordRepository
from archive.content.schemas import RecordCreate
from archive.lifecycle import GracefulShutdown
from archive.search.schemas import IndexedDocument, QueryHits


class FakeSearchAdapter:
    """In-memory stand-in for the search engine."""

    def __init__(self, batch_size: int = 100) -> None:
        self.documents: dict[str, IndexedDocument] = {}
        self.fail_with: Exception | None = None
        self.query_bodies: list[dict[str, Any]] = []
        self.query_hits = QueryHits(ids=[], total=0)
        self.index_calls = 0
        self.delete_calls = 0
        self.refresh_count = 0
        self.batch_size = batch_size
        self.available = True

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def ensure_index_exists(self) -> None:
        return None

    def index_document(self, document: IndexedDocument) -> None:
        self.index_calls += 1
        self._maybe_fail()
        self.documents[document.subject_id] = document

    def delete_document(self, subject_id: str) -> None:
        self.delete_calls += 1
        self._maybe_fail()
        self.documents.pop(subject_id, None)

    def query(self, body: dict[str, Any]) -> QueryHits:
        self.query_bodies.append(body)
        self._maybe_fail()
        return self.query_hits

    def list_all_indexed_ids(self) -> list[str]:
        self._maybe_fail()
        return list(self.documents)

    def bulk_index(
        self,
        documents: Iterable[IndexedDocument],
        progress: Callable[[int], None],
    ) -> int:
        processed = 0
        batch: list[IndexedDocument] = []
        for doc in documents:
            batch.append(doc)
            if len(batch) == self.batch_size:
                processed += self._flush(batch)
                progress(processed)
                batch = []
        if batch:
            processed += self._flush(batch)
            progress(processed)
        self.refresh_count += 1
        return processed

    def _flush(self, batch: list[IndexedDocument]) -> int:
        self._maybe_fail()
        for doc in batch:
            self.documents[doc.subject_id] = doc
        return len(batch)

    def ping(self) -> bool:
        return self.available


class RecordingShutdown(GracefulShutdown):
    """Shutdown signal whose sleeps return at once and are recorded."""

    def __init__(self) -> None:
        super().__init__(timeout=5.0)
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        return self.is_triggered


def add_record(
    records: RecordRepository,
    subject_id: str,
    description: str = "",
    creator_id: str | None = None,
    creator_name: str | None = None,
    tags: list[str] | None = None,
) -> None:
    """Insert a record directly, bypassing the queue."""
    records.upsert(
        RecordCreate(
            subject_id=subject_id,
            description=description,
            creator_id=creator_id,
            creator_name=creator_name,
            tags=tags or [],
        )
    )
