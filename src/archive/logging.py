"""Structured logging configuration using structlog."""

import logging
import sys

import structlog

# Standard library loggers that should end up in the structlog stream.
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "opensearch")


def configure_logging(debug: bool = False) -> None:
    """Configure structlog output on stdout.

    Lines are JSON in production and colored key/value pairs when
    ``debug`` is set. Uvicorn and the OpenSearch client log through the
    root handler so every line ends up in one stream.

    Args:
        debug: Enable debug-level logging and the console renderer.
    """
    level = logging.DEBUG if debug else logging.INFO
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if not debug:
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in ROUTED_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = []
        stdlib_logger.propagate = True

    # The client logs every request at INFO; keep only its warnings.
    logging.getLogger("opensearch").setLevel(max(level, logging.WARNING))
