"""Structured logging setup for the bridge process."""

from __future__ import annotations

import atexit
import logging
from typing import Optional, TextIO

import structlog


_log_stream: Optional[TextIO] = None


def close_log_file() -> None:
    """Close the log file sink, if any. Registered to run at interpreter exit."""
    global _log_stream
    if _log_stream is not None:
        _log_stream.close()
        _log_stream = None


atexit.register(close_log_file)


def configure_logging(level: str = "INFO", *, verbose: bool = False, log_file: str = "") -> None:
    """Configure structlog once at process start.

    Args:
        level: Logging level name (INFO, WARNING, ...)
        verbose: Force DEBUG output, including send_nsca command output
        log_file: Append to this file instead of printing to stdout
    """
    global _log_stream

    numeric_level = logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO)

    close_log_file()
    if log_file:
        _log_stream = open(log_file, "a", encoding="utf-8", buffering=1)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(colors=_log_stream is None),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=_log_stream),
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(__name__).info("Logging configured", level=logging.getLevelName(numeric_level), log_file=log_file or None)
