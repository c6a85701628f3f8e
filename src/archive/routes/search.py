"""Full-text search API endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request

from archive.search.query import resolve_fields
from archive.search.schemas import SearchResponse

if TYPE_CHECKING:
    from archive.search.query import QueryEngine

router = APIRouter(tags=["search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search archived videos",
    description=(
        "Fuzzy search over description, creator and tags, newest additions first."
    ),
)
async def search(
    request: Request,
    q: str = Query(
        ...,
        min_length=1,
        max_length=200,
        description="Search query string",
    ),
    page: int = Query(default=1, ge=1, description="1-based page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
    fields: list[str] | None = Query(
        default=None,
        description="Fields to search: description, creator, tags or all",
    ),
) -> SearchResponse:
    """Search the archive.

    Engine failures surface as an empty result set, never as an error.

    Args:
        request: FastAPI request (provides access to app state).
        q: Search query string (1-200 characters).
        page: Page number, starting at 1.
        page_size: Maximum results per page (1-100, default 20).
        fields: Optional field selection.

    Returns:
        Records in engine order with the total match count.
    """
    engine: QueryEngine = request.app.state.query_engine
    result = await engine.search(q, page=page, page_size=page_size, fields=fields)

    return SearchResponse(
        query=q,
        fields=resolve_fields(fields),
        results=result.records,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )
