"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from archive.config import Settings
from archive.content.database import Database
from archive.content.repositories import (
    OperationRepository,
    RecordRepository,
    SyncConfigRepository,
)
from archive.content.service import RecordService
from archive.indexing import (
    Dispatcher,
    DurableQueue,
    ReconciliationSweeper,
    ReindexService,
)
from archive.lifecycle import GracefulShutdown, supervise
from archive.middleware.auth import AdminKeyMiddleware
from archive.middleware.logging import RequestLoggingMiddleware
from archive.routes import admin, health, records, search
from archive.search import OpenSearchAdapter, QueryEngine, SearchAdapter

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the archive database, makes sure the search index exists and
    starts the dispatcher and sweeper as supervised background tasks. On
    shutdown the shared signal is triggered, running reindex sessions are
    stopped, and the loops get the configured timeout before cancellation.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    shutdown: GracefulShutdown = app.state.shutdown
    logger.info("api_startup", host=settings.host, port=settings.port)

    database = Database(settings.database_path)
    database.initialize()

    owns_adapter = app.state.search_adapter is None
    adapter: SearchAdapter = app.state.search_adapter or OpenSearchAdapter.from_url(
        settings.opensearch_url,
        settings.opensearch_index,
        bulk_batch_size=settings.bulk_batch_size,
        verify_certs=settings.opensearch_verify_certs,
    )
    await asyncio.to_thread(adapter.ensure_index_exists)

    record_repo = RecordRepository(database)
    operations = OperationRepository(database)
    sync_config = SyncConfigRepository(
        database, default_interval_minutes=settings.default_sync_interval_minutes
    )

    queue = DurableQueue(
        operations,
        max_retries=settings.max_retries,
        recovery_batch_size=settings.recovery_batch_size,
    )
    dispatcher = Dispatcher(
        queue,
        operations,
        record_repo,
        adapter,
        shutdown,
        max_retries=settings.max_retries,
        backoff_base_seconds=settings.backoff_base_seconds,
        fault_delay_seconds=settings.dispatcher_fault_delay_seconds,
    )
    sweeper = ReconciliationSweeper(
        queue,
        record_repo,
        sync_config,
        adapter,
        shutdown,
        initial_delay_seconds=settings.sweep_initial_delay_seconds,
        fallback_delay_seconds=settings.sweep_fallback_delay_seconds,
    )
    reindex_service = ReindexService(
        record_repo,
        adapter,
        batch_size=settings.bulk_batch_size,
        retention_seconds=settings.reindex_retention_seconds,
    )

    app.state.database = database
    app.state.search_adapter = adapter
    app.state.records = record_repo
    app.state.operations = operations
    app.state.sync_config = sync_config
    app.state.index_queue = queue
    app.state.reindex_service = reindex_service
    app.state.query_engine = QueryEngine(adapter, record_repo)
    app.state.record_service = RecordService(record_repo, queue)

    tasks = [
        asyncio.create_task(
            supervise("search_dispatcher", dispatcher.run, shutdown),
            name="search_dispatcher",
        ),
        asyncio.create_task(
            supervise("search_sweeper", sweeper.run, shutdown),
            name="search_sweeper",
        ),
    ]

    try:
        yield
    finally:
        shutdown.trigger()
        await reindex_service.shutdown()

        _, pending = await asyncio.wait(tasks, timeout=shutdown.timeout)
        for task in pending:
            logger.warning("background_task_forced_stop", task=task.get_name())
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        database.close()
        if owns_adapter and isinstance(adapter, OpenSearchAdapter):
            adapter.close()
        logger.info("api_shutdown")


def create_app(
    settings: Settings | None = None,
    search_adapter: SearchAdapter | None = None,
    shutdown: GracefulShutdown | None = None,
) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.
        search_adapter: Search engine adapter. An OpenSearch adapter is
            built from settings at startup if None.
        shutdown: Shutdown signal shared with the server. Creates one if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Archive Search API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.search_adapter = search_adapter
    app.state.shutdown = shutdown or GracefulShutdown(timeout=settings.shutdown_timeout)

    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(AdminKeyMiddleware, api_key=settings.key)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(records.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
