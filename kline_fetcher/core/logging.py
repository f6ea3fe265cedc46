"""Structured logging foundation for the kline fetcher.

Provides JSON logging (prod) or colored console (dev) via structlog.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, cast

import structlog


def _configure_structlog() -> None:
    """Configure structlog based on KLINES_ENV and KLINES_LOG_LEVEL."""
    env = os.environ.get("KLINES_ENV", "development")
    log_level_name = os.environ.get("KLINES_LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelName(log_level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if env == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout is reserved for the CLI summary lines
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


_CONFIGURED = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance.

    Args:
        name: Logger name (typically module __name__).

    Returns:
        Configured structlog bound logger.
    """
    global _CONFIGURED
    if not _CONFIGURED:
        _configure_structlog()
        _CONFIGURED = True

    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def bind_run_context(**kwargs: Any) -> None:
    """Attach run-wide fields (symbol, interval, window) to every log line.

    Context lives in contextvars; the sink thread runs inside a copy of
    the context captured when it was created.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
