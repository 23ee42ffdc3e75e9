"""
Structured logging configuration.

This module provides logging with support for:
- Correlation ID tracking (HTTP requests and WebSocket connections)
- Contextual fields (connection_id, identity_id, event, etc.)
- Human readable console output for development, JSON for production
- A JSON error log file
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from support_relay.constants import MAX_LOG_SIZE_BYTES
from support_relay.settings import app_settings

# Context variable for storing connection/request specific logging context
log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

_RESERVED_RECORD_KEYS = frozenset(
    [
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
        "correlation_id",
    ]
)


def get_correlation_id() -> str:
    """
    Get correlation ID from context, safe wrapper for logging.

    Returns:
        Correlation ID or empty string if not available.
    """
    from support_relay.middlewares.correlation_id import (
        get_correlation_id as _get_cid,
    )

    return _get_cid()


def set_log_context(**kwargs: Any) -> None:
    """
    Set contextual fields for structured logging.

    A fresh dict is stored so concurrent connection tasks never share
    (and mutate) the same context mapping.

    Example:
        >>> set_log_context(connection_id="3f2a...")
        >>> logger.info("Routing message")  # Will include connection_id
    """
    log_context.set({**log_context.get(), **kwargs})


def get_log_context() -> dict[str, Any]:
    """Get current log context."""
    return log_context.get()


def clear_log_context() -> None:
    """Clear the log context (useful when a connection closes)."""
    log_context.set({})


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs the standard fields (timestamp, level, logger, message), the
    correlation ID, contextual fields from ``log_context``, ``extra``
    fields passed to the logging call and exception information.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["request_id"] = correlation_id

        context = get_log_context()
        if context:
            log_data.update(context)

        log_data["environment"] = app_settings.ENV.value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        json_str = json.dumps(log_data, default=str)
        if len(json_str) > MAX_LOG_SIZE_BYTES:
            log_data["message"] = (
                log_data["message"][: MAX_LOG_SIZE_BYTES - 1000]
                + "... [TRUNCATED]"
            )
            json_str = json.dumps(log_data, default=str)

        return json_str


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for console output (non-JSON).

    Uses different format strings based on log level for better readability
    during development.
    """

    INFO_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(message)s"
    ERROR_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(module)s.%(funcName)s:%(lineno)d - %(message)s"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._formatters = {
            logging.INFO: logging.Formatter(
                self.INFO_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.WARNING: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.ERROR: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.DEBUG: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
        }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with correlation ID."""
        record.correlation_id = get_correlation_id() or "-"

        formatter = self._formatters.get(
            record.levelno, self._formatters[logging.INFO]
        )
        return formatter.format(record)


def setup_logging() -> logging.Logger:
    """
    Configure logging for the relay.

    This function sets up:
    - Console handler (human-readable or JSON, see LOG_CONSOLE_FORMAT)
    - File handler for errors (JSON format)

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, app_settings.LOG_LEVEL.upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    if app_settings.LOG_CONSOLE_FORMAT == "json":
        console_handler.setFormatter(StructuredJSONFormatter())
    else:
        console_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(console_handler)

    try:
        file_handler = logging.FileHandler(app_settings.LOG_FILE_PATH)
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(StructuredJSONFormatter())
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not create file handler: {e}")

    # Disable logging during pytest runs
    if sys.argv[0].split("/")[-1] in ["pytest"]:
        logging.disable(logging.ERROR)

    return logger


logger = setup_logging()
