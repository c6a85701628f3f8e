"""Operator endpoints for sweep settings, reindexing and queue status."""

import asyncio
from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from archive.content.repositories.operations import OperationRepository
from archive.content.repositories.sync_config import SyncConfigRepository
from archive.content.schemas import OperationKind, SyncConfiguration
from archive.indexing.queue import DurableQueue
from archive.indexing.reindex import ReindexProgress, ReindexService

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])


class ConfigUpdateRequest(BaseModel):
    """Request body for changing the sweep interval."""

    sync_interval_minutes: int = Field(ge=1, le=10080)


class ReindexStartResponse(BaseModel):
    """Token for polling a started reindex."""

    session_id: str


class DeadLetter(BaseModel):
    """Operation that exhausted its retries."""

    subject_id: str
    kind: OperationKind
    retry_count: int
    last_error: str | None
    last_attempt_at: datetime | None


class QueueStatusResponse(BaseModel):
    """Queue backlog and the most recent dead letters."""

    pending_count: int
    recent_errors: list[DeadLetter]


@router.get("/config", response_model=SyncConfiguration)
async def get_config(request: Request) -> SyncConfiguration:
    """Return the sweep configuration, creating the default on first read."""
    repo: SyncConfigRepository = request.app.state.sync_config
    return await asyncio.to_thread(repo.get)


@router.put("/config", response_model=SyncConfiguration)
async def update_config(
    request: Request, body: ConfigUpdateRequest
) -> SyncConfiguration:
    """Change the sweep interval. Takes effect after the current sleep."""
    repo: SyncConfigRepository = request.app.state.sync_config
    config = await asyncio.to_thread(repo.set_interval, body.sync_interval_minutes)
    logger.info(
        "sync_config_updated", sync_interval_minutes=config.sync_interval_minutes
    )
    return config


@router.post("/reindex", response_model=ReindexStartResponse, status_code=202)
async def start_reindex(request: Request) -> ReindexStartResponse:
    """Start a full reindex of every record in the background."""
    service: ReindexService = request.app.state.reindex_service
    session_id = await service.start()
    return ReindexStartResponse(session_id=session_id)


@router.get("/reindex/{session_id}", response_model=ReindexProgress)
async def get_reindex_progress(request: Request, session_id: str) -> ReindexProgress:
    """Poll a reindex session.

    Raises:
        HTTPException: 404 if the session is unknown or already evicted.
    """
    service: ReindexService = request.app.state.reindex_service
    progress = service.get(session_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Reindex session not found")
    return progress


@router.get("/queue/status", response_model=QueueStatusResponse)
async def queue_status(request: Request) -> QueueStatusResponse:
    """Report the pending operation count and recent dead letters."""
    queue: DurableQueue = request.app.state.index_queue
    operations: OperationRepository = request.app.state.operations
    settings = request.app.state.settings

    pending = await queue.pending_count()
    dead = await asyncio.to_thread(
        operations.list_dead_letters,
        settings.max_retries,
        settings.dead_letter_report_limit,
    )
    return QueueStatusResponse(
        pending_count=pending,
        recent_errors=[
            DeadLetter(
                subject_id=op.subject_id,
                kind=op.kind,
                retry_count=op.retry_count,
                last_error=op.last_error,
                last_attempt_at=op.last_attempt_at,
            )
            for op in dead
        ],
    )
