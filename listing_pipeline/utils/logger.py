"""
Structured logging configuration.

Every module logs through ``get_logger(__name__)`` with keyword fields.
``LogContext`` scopes fields such as ``run_id`` and ``platform`` to a block,
including across ``await`` points and concurrently generated platforms.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import Processor


def _processors(json_format: bool) -> list[Processor]:
    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_format: JSON lines instead of the console renderer.
        log_file: Append log lines to this file instead of stdout. Always
            written as JSON.

    Raises:
        ValueError: For an unknown level name.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    if log_file:
        logger_factory = structlog.WriteLoggerFactory(file=open(log_file, "a", encoding="utf-8"))
        json_format = True
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=_processors(json_format),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )

    # anthropic and httpx log through the standard library
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(log_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


class LogContext:
    """
    Bind log fields for the duration of a ``with`` block.

    Nested contexts restore the outer values on exit rather than dropping
    them.

    Example:
        >>> with LogContext(run_id=run.pipeline_id):
        ...     logger.info("Step started", step="asset-verification")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._tokens = None

    def __enter__(self):
        self._tokens = structlog.contextvars.bind_contextvars(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tokens is not None:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None
