"""Search engine adapter and query construction."""

from archive.search.adapter import SearchAdapter, SearchAdapterError
from archive.search.opensearch import OpenSearchAdapter
from archive.search.query import QueryEngine, build_query
from archive.search.schemas import (
    IndexedDocument,
    QueryHits,
    SearchPage,
    SearchResponse,
    build_document,
)

__all__ = [
    "IndexedDocument",
    "OpenSearchAdapter",
    "QueryEngine",
    "QueryHits",
    "SearchAdapter",
    "SearchAdapterError",
    "SearchPage",
    "SearchResponse",
    "build_document",
    "build_query",
]
