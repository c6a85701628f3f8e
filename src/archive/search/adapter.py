"""Contract between the indexing core and the external search engine."""

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from archive.search.schemas import IndexedDocument, QueryHits

ProgressCallback = Callable[[int], None]


class SearchAdapterError(Exception):
    """The search engine rejected a request or could not be reached."""


class SearchAdapter(Protocol):
    """Operations the core needs from the search engine.

    Methods are blocking; async callers run them with ``asyncio.to_thread``.
    """

    def ensure_index_exists(self) -> None:
        """Create the index if missing. Logs errors instead of raising."""
        ...

    def index_document(self, document: IndexedDocument) -> None:
        """Write a full document, replacing any previous version."""
        ...

    def delete_document(self, subject_id: str) -> None:
        """Remove a document. A missing document counts as success."""
        ...

    def query(self, body: dict[str, Any]) -> QueryHits:
        """Run a search request and return ordered subject ids and the total."""
        ...

    def list_all_indexed_ids(self) -> list[str]:
        """Return the subject id of every document in the index."""
        ...

    def bulk_index(
        self,
        documents: Iterable[IndexedDocument],
        progress: ProgressCallback,
    ) -> int:
        """Index documents in fixed-size batches.

        Calls ``progress`` with the cumulative count after each batch and
        refreshes the index once at the end.

        Returns:
            Number of documents submitted.
        """
        ...

    def ping(self) -> bool:
        """Return True if the engine is reachable."""
        ...
