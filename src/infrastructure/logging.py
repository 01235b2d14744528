"""Centralised logging configuration with JSON output."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Protocol

import structlog

DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

_CONFIGURED = False


class LogSink(Protocol):
    """What the ingestion code needs from a logger; structlog loggers qualify."""

    def info(self, event: str, **fields: Any) -> Any: ...

    def warning(self, event: str, **fields: Any) -> Any: ...

    def error(self, event: str, **fields: Any) -> Any: ...


def _configure_structlog(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Initialise stdlib + structlog JSON logging."""
    global _CONFIGURED
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    _configure_structlog(level)
    _CONFIGURED = True


def get_logger(name: str, **initial_values: Any) -> LogSink:
    """Return a bound structured logger."""
    if not _CONFIGURED:
        configure_logging()
    logger = structlog.get_logger(name)
    if initial_values:
        return logger.bind(**initial_values)
    return logger


__all__ = ["LogSink", "configure_logging", "get_logger"]
