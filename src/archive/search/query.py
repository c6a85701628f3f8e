"""Multi-field query construction and result hydration."""

import asyncio
import re
from collections.abc import Iterable
from typing import Any

import structlog

from archive.content.repositories.records import RecordRepository
from archive.search.adapter import SearchAdapter
from archive.search.schemas import SearchPage

logger = structlog.get_logger()

DEFAULT_FIELDS: tuple[str, ...] = ("description", "creator", "tags")
ALL_FIELDS = "all"

DESCRIPTION_BOOST = 2.0
CREATOR_NAME_BOOST = 1.5
TAGS_BOOST = 1.0

_WILDCARD_SPECIAL = re.compile(r"([\\*?])")


def _substring_pattern(query: str) -> str:
    """Lower-cased ``*query*`` wildcard with metacharacters escaped."""
    escaped = _WILDCARD_SPECIAL.sub(r"\\\1", query.lower())
    return f"*{escaped}*"


def resolve_fields(fields: Iterable[str] | None) -> list[str]:
    """Normalize the requested field selection.

    None, an empty selection, or one containing "all" means every field.
    Unknown names are ignored; if nothing known remains, every field is used.

    Args:
        fields: Field names requested by the caller.

    Returns:
        Selected fields in canonical order.
    """
    if fields is None:
        return list(DEFAULT_FIELDS)
    requested = {f.strip().lower() for f in fields if f and f.strip()}
    if not requested or ALL_FIELDS in requested:
        return list(DEFAULT_FIELDS)
    selected = [f for f in DEFAULT_FIELDS if f in requested]
    return selected or list(DEFAULT_FIELDS)


def build_query(
    query: str,
    page: int,
    page_size: int,
    fields: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Build the engine request for one page of a free-text search.

    Matches on any selected field (``minimum_should_match`` 1), sorted by
    archive recency rather than relevance score.

    Args:
        query: User query text.
        page: 1-based page number.
        page_size: Results per page.
        fields: Fields to search, see :func:`resolve_fields`.

    Returns:
        Request body for the search endpoint.
    """
    selected = resolve_fields(fields)
    should: list[dict[str, Any]] = []

    if "description" in selected:
        should.append(
            {
                "match": {
                    "description": {
                        "query": query,
                        "fuzziness": "AUTO",
                        "boost": DESCRIPTION_BOOST,
                    }
                }
            }
        )

    if "creator" in selected:
        should.append(
            {
                "match": {
                    "creator_name": {
                        "query": query,
                        "fuzziness": "AUTO",
                        "boost": CREATOR_NAME_BOOST,
                    }
                }
            }
        )
        should.append(
            {
                "wildcard": {
                    "creator_username": {
                        "value": _substring_pattern(query),
                        "case_insensitive": True,
                    }
                }
            }
        )

    if "tags" in selected:
        should.append(
            {
                "wildcard": {
                    "tags": {
                        "value": _substring_pattern(query),
                        "case_insensitive": True,
                        "boost": TAGS_BOOST,
                    }
                }
            }
        )

    return {
        "query": {"bool": {"should": should, "minimum_should_match": 1}},
        "sort": [{"added_at": {"order": "desc"}}],
        "from": (page - 1) * page_size,
        "size": page_size,
        "track_total_hits": True,
        "_source": False,
    }


class QueryEngine:
    """Read-only search over the index, hydrated from the record store."""

    def __init__(self, adapter: SearchAdapter, records: RecordRepository) -> None:
        self._adapter = adapter
        self._records = records

    async def search(
        self,
        query: str,
        page: int = 1,
        page_size: int = 20,
        fields: Iterable[str] | None = None,
    ) -> SearchPage:
        """Search the index and return full records in engine order.

        Ids the engine returns but the record store no longer has are
        dropped from the page; the engine total is reported unchanged.
        Any failure yields an empty page instead of an exception.

        Args:
            query: User query text.
            page: 1-based page number.
            page_size: Results per page.
            fields: Fields to search.

        Returns:
            The hydrated page.
        """
        page = max(page, 1)
        empty = SearchPage(records=[], total=0, page=page, page_size=page_size)

        text = query.strip()
        if not text or page_size <= 0:
            return empty

        body = build_query(text, page, page_size, fields)
        try:
            hits = await asyncio.to_thread(self._adapter.query, body)
            found = await asyncio.to_thread(self._records.get_by_ids, hits.ids)
        except Exception:
            logger.exception("search_query_failed", query=text, page=page)
            return empty

        by_id = {record.subject_id: record for record in found}
        ordered = [by_id[sid] for sid in hits.ids if sid in by_id]
        if len(ordered) < len(hits.ids):
            logger.info(
                "search_results_dropped",
                query=text,
                dropped=len(hits.ids) - len(ordered),
            )

        return SearchPage(
            records=ordered, total=hits.total, page=page, page_size=page_size
        )
