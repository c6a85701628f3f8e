"""Shared shutdown signal for the background indexing tasks."""
import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Coordinates cooperative shutdown across async tasks.

    The dispatcher, the sweeper and the reindex sessions all observe the
    same instance. Their waits go through :meth:`sleep` so a pending
    backoff or sweep interval ends as soon as shutdown is triggered.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
        timeout: Seconds the owner should wait for tasks after triggering.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Seconds to wait for background tasks to finish.
        """
        self._triggered = False
        self._event = asyncio.Event()
        self.timeout = timeout

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered.

        Returns:
            True if shutdown signal received.
        """
        return self._triggered

    def trigger(self) -> None:
        """Signal all waiting tasks to begin shutdown.

        Idempotent - calling multiple times has no additional effect.
        """
        if self._triggered:
            return
        logger.info("shutdown_triggered")
        self._triggered = True
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Wait indefinitely for shutdown signal."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for up to ``seconds``, waking early on shutdown.

        Args:
            seconds: Maximum time to sleep.

        Returns:
            True if shutdown was triggered before or during the sleep,
            False if the full duration elapsed.
        """
        if self._triggered:
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


async def supervise(
    name: str,
    run: Callable[[], Awaitable[None]],
    shutdown: GracefulShutdown,
    restart_delay: float = 5.0,
) -> None:
    """Keep a background loop running until shutdown.

    The loop is restarted after ``restart_delay`` seconds if it raises.
    Cancellation propagates.

    Args:
        name: Task name used in log events.
        run: Factory returning the loop coroutine.
        shutdown: Shared shutdown signal.
        restart_delay: Pause before restarting a crashed loop.
    """
    while not shutdown.is_triggered:
        try:
            await run()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("background_task_crashed", task=name)
            await shutdown.sleep(restart_delay)
            continue
        if not shutdown.is_triggered:
            logger.warning("background_task_exited", task=name)
            await shutdown.sleep(restart_delay)
