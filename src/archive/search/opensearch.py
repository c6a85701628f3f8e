"""OpenSearch implementation of the search adapter."""

from collections.abc import Iterable, Iterator
from itertools import islice
from typing import Any

import structlog
from opensearchpy import OpenSearch, helpers
from opensearchpy.exceptions import NotFoundError, OpenSearchException

from archive.search.adapter import ProgressCallback, SearchAdapterError
from archive.search.schemas import IndexedDocument, QueryHits

logger = structlog.get_logger()

INDEX_SETTINGS: dict[str, Any] = {
    "settings": {
        "analysis": {
            "analyzer": {
                "ngram_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": ["lowercase", "ngram_filter"],
                }
            },
            "filter": {
                "ngram_filter": {"type": "ngram", "min_gram": 3, "max_gram": 4}
            },
        }
    },
    "mappings": {
        "properties": {
            "subject_id": {"type": "keyword"},
            "description": {
                "type": "text",
                "analyzer": "ngram_analyzer",
                "search_analyzer": "standard",
            },
            "creator_name": {
                "type": "text",
                "analyzer": "ngram_analyzer",
                "search_analyzer": "standard",
            },
            "creator_username": {"type": "keyword"},
            "tags": {"type": "keyword"},
            "created_at": {"type": "date"},
            "added_at": {"type": "date"},
        }
    },
}


def _batched(items: Iterable[IndexedDocument], size: int) -> Iterator[list[IndexedDocument]]:
    iterator = iter(items)
    while batch := list(islice(iterator, size)):
        yield batch


class OpenSearchAdapter:
    """Search adapter backed by an OpenSearch cluster.

    Single-document writes do not refresh the index; the engine's refresh
    interval makes them searchable. Only a bulk reindex forces a refresh.
    """

    def __init__(
        self,
        client: OpenSearch,
        index_name: str,
        bulk_batch_size: int = 100,
    ) -> None:
        """Initialize adapter.

        Args:
            client: Configured OpenSearch client.
            index_name: Index holding the archive documents.
            bulk_batch_size: Documents per bulk request.
        """
        self._client = client
        self._index = index_name
        self._batch_size = bulk_batch_size

    @classmethod
    def from_url(
        cls,
        url: str,
        index_name: str,
        bulk_batch_size: int = 100,
        verify_certs: bool = True,
    ) -> "OpenSearchAdapter":
        """Build an adapter with a client pointed at ``url``."""
        client = OpenSearch(
            hosts=[url],
            verify_certs=verify_certs,
            ssl_show_warn=False,
            timeout=30,
        )
        return cls(client, index_name, bulk_batch_size=bulk_batch_size)

    def ensure_index_exists(self) -> None:
        try:
            if self._client.indices.exists(index=self._index):
                logger.info("search_index_exists", index=self._index)
                return
            self._client.indices.create(index=self._index, body=INDEX_SETTINGS)
            logger.info("search_index_created", index=self._index)
        except OpenSearchException as e:
            logger.error("search_index_init_failed", index=self._index, error=str(e))

    def index_document(self, document: IndexedDocument) -> None:
        try:
            self._client.index(
                index=self._index,
                id=document.subject_id,
                body=document.model_dump(mode="json"),
                refresh=False,
            )
        except OpenSearchException as e:
            raise SearchAdapterError(
                f"Failed to index {document.subject_id}: {e}"
            ) from e
        logger.debug("search_document_indexed", subject_id=document.subject_id)

    def delete_document(self, subject_id: str) -> None:
        try:
            self._client.delete(index=self._index, id=subject_id, refresh=False)
        except NotFoundError:
            logger.debug("search_document_already_absent", subject_id=subject_id)
            return
        except OpenSearchException as e:
            raise SearchAdapterError(f"Failed to delete {subject_id}: {e}") from e
        logger.debug("search_document_deleted", subject_id=subject_id)

    def query(self, body: dict[str, Any]) -> QueryHits:
        try:
            response = self._client.search(index=self._index, body=body)
        except OpenSearchException as e:
            raise SearchAdapterError(f"Search request failed: {e}") from e

        hits = response.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)
        ids = [hit["_id"] for hit in hits.get("hits", [])]
        return QueryHits(ids=ids, total=int(total))

    def list_all_indexed_ids(self) -> list[str]:
        try:
            return [
                hit["_id"]
                for hit in helpers.scan(
                    self._client,
                    index=self._index,
                    query={"query": {"match_all": {}}, "_source": False},
                    size=1000,
                )
            ]
        except OpenSearchException as e:
            raise SearchAdapterError(f"Failed to list indexed ids: {e}") from e

    def bulk_index(
        self,
        documents: Iterable[IndexedDocument],
        progress: ProgressCallback,
    ) -> int:
        processed = 0
        try:
            for batch in _batched(documents, self._batch_size):
                actions = [
                    {
                        "_index": self._index,
                        "_id": doc.subject_id,
                        "_source": doc.model_dump(mode="json"),
                    }
                    for doc in batch
                ]
                _, errors = helpers.bulk(
                    self._client, actions, raise_on_error=False, refresh=False
                )
                if errors:
                    logger.error(
                        "search_bulk_batch_errors",
                        failed=len(errors),
                        batch_size=len(batch),
                    )
                processed += len(batch)
                progress(processed)

            self._client.indices.refresh(index=self._index)
        except OpenSearchException as e:
            raise SearchAdapterError(f"Bulk index failed: {e}") from e

        logger.info("search_bulk_index_completed", processed=processed)
        return processed

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except OpenSearchException:
            return False

    def close(self) -> None:
        """Close the client's connection pool."""
        self._client.close()
