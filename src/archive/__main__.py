"""Entry point for the API server."""

import asyncio
import contextlib
import signal
import sys

import structlog
import uvicorn

from archive.app import create_app
from archive.config import Settings
from archive.lifecycle import GracefulShutdown
from archive.logging import configure_logging

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn server with graceful shutdown support.

    SIGTERM/SIGINT trigger the shared shutdown signal, which stops the
    background indexing loops and tells uvicorn to exit.

    Args:
        settings: Server configuration.
    """
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)
    app = create_app(settings, shutdown=shutdown)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.trigger)

    async def shutdown_server() -> None:
        """Wait for shutdown signal and stop server."""
        await shutdown.wait_for_trigger()
        server.should_exit = True

    await asyncio.gather(
        server.serve(),
        shutdown_server(),
        return_exceptions=True,
    )


def main() -> None:
    """Entry point for python -m archive."""
    settings = Settings()
    configure_logging(debug=settings.debug)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
