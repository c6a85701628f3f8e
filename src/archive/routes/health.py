"""Health check endpoints for liveness and readiness probes."""

import asyncio
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from archive.content.database import Database
from archive.search.adapter import SearchAdapter

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe."""

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness probe."""

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]


async def _check_database(database: Database) -> ReadinessCheck:
    if await asyncio.to_thread(database.ping):
        return ReadinessCheck(name="database", status="ok")
    return ReadinessCheck(
        name="database", status="failed", message="Database not reachable"
    )


async def _check_search(adapter: SearchAdapter) -> ReadinessCheck:
    if await asyncio.to_thread(adapter.ping):
        return ReadinessCheck(name="search", status="ok")
    return ReadinessCheck(
        name="search", status="failed", message="Search engine not reachable"
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Checks the archive database and the search engine. Returns 200 if
    both answer, 503 otherwise. Search trouble makes the service not
    ready even though record writes would still succeed.

    Returns:
        Readiness status with individual check results.
    """
    checks = [
        await _check_database(request.app.state.database),
        await _check_search(request.app.state.search_adapter),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
