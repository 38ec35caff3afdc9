"""
Structured logging configuration for the relay.

This module provides:
- A per-task logging context (session id, direction, etc.) backed by a
  ContextVar, so every line a session logs can be traced back to it
- Human-readable console output for development
- JSON-formatted file output for errors
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from logging_loki import LokiHandler

# Context variable for storing session-specific logging context
log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

logger = logging.getLogger("realtime_relay")

# Attributes present on every LogRecord; anything else is an "extra" field
_RECORD_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "session_id",
    }
)


def set_log_context(**kwargs: Any) -> None:
    """
    Set contextual fields for structured logging.

    The context is copied on write, so tasks created afterwards inherit
    it while sibling tasks keep their own.

    Args:
        **kwargs: Key-value pairs to add to log context.

    Example:
        >>> set_log_context(session_id="3f2a9c")
        >>> logger.info("Upstream connected")  # Will include session_id
    """
    log_context.set({**log_context.get(), **kwargs})


def get_log_context() -> dict[str, Any]:
    """Get current log context."""
    return log_context.get()


def clear_log_context() -> None:
    """Clear the log context."""
    log_context.set({})


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs the standard fields (timestamp, level, logger, message), the
    fields from log_context, any ``extra`` fields and exception info.
    """

    def __init__(self, environment: str = "development", **kwargs: Any):
        super().__init__(**kwargs)
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "environment": self.environment,
        }

        log_data.update(get_log_context())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.

    Uses a longer format with source location for anything that is not
    INFO, and tags every line with the current session id.
    """

    INFO_FMT = "%(asctime)s - [%(session_id)s] %(levelname)s: %(message)s"
    ERROR_FMT = "%(asctime)s - [%(session_id)s] %(levelname)s: %(module)s.%(funcName)s:%(lineno)d - %(message)s"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._info = logging.Formatter(self.INFO_FMT, datefmt="%Y-%m-%d %H:%M:%S")
        self._detailed = logging.Formatter(
            self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        record.session_id = get_log_context().get("session_id", "-")

        if record.levelno == logging.INFO:
            return self._info.format(record)
        return self._detailed.format(record)


class ExcludePathsFilter(logging.Filter):
    """
    Logging filter dropping access-log lines for monitoring endpoints.

    Prevents log noise from health checks and Prometheus scraping.
    """

    def __init__(self, paths: list[str]):
        super().__init__()
        self.paths = list(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in self.paths)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    environment: str = "development",
    excluded_paths: list[str] | None = None,
    loki_url: str | None = None,
    loki_version: str = "1",
) -> logging.Logger:
    """
    Configure root logging for the relay process.

    Sets up:
    - Console handler with human-readable format
    - File handler for errors (JSON format), when a path is given
    - Grafana Loki handler (JSON format), when a Loki URL is given
    - Access-log filter for monitoring endpoints

    Returns:
        The relay logger.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers to avoid duplicates
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(HumanReadableFormatter())
    root.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
        except OSError as e:
            logger.warning(f"Could not create file handler: {e}")
        else:
            file_handler.setLevel(logging.ERROR)
            file_handler.setFormatter(
                StructuredJSONFormatter(environment=environment)
            )
            root.addHandler(file_handler)

    if loki_url:
        try:
            loki_handler = LokiHandler(
                url=f"{loki_url}/loki/api/v{loki_version}/push",
                tags={"application": "realtime-relay", "environment": environment},
                version=loki_version,
            )
        except ValueError as e:
            logger.warning(f"Could not configure Loki handler: {e}")
        else:
            loki_handler.setLevel(logging.INFO)
            loki_handler.setFormatter(
                StructuredJSONFormatter(environment=environment)
            )
            root.addHandler(loki_handler)
            logger.info("Loki handler configured")

    if excluded_paths:
        logging.getLogger("uvicorn.access").addFilter(
            ExcludePathsFilter(excluded_paths)
        )

    return logger
