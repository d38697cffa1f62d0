"""Shared logging utilities for structured logging across the pipeline.

This module provides a centralized logging configuration using structlog.
Logs are JSON by default; set LOG_FORMAT=console for local debugging.
"""

import logging
import os
import sys

import structlog

_configured = False


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name (default: LOG_LEVEL env var, then INFO).
        fmt: "json" or "console" (default: LOG_FORMAT env var, then json).
    """
    global _configured

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    renderer_name = (fmt or os.getenv("LOG_FORMAT", "json")).lower()

    renderer: structlog.types.Processor
    if renderer_name == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structured logger instance.

    Configuration happens once per process on the first call.

    Args:
        name: Logger name (typically __name__ from the calling module).

    Returns:
        Configured structlog logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("transcript_fetched", video_id="abc", items=120)
        >>> logger.warning("transcript_method_failed", method="timedtext", status_code=404)
    """
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)
