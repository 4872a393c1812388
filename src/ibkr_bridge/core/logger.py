from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

# Correlation ID shared by every record emitted during one batch run
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Record attributes copied into structured output when present
_EXTRA_FIELDS = (
    "symbol",
    "conid",
    "order_id",
    "operation",
    "item_index",
    "event_type",
    "error",
    "error_type",
)


def get_correlation_id() -> str:
    """Get the current correlation ID."""
    return _correlation_id.get()


def set_correlation_id(cid: Optional[str] = None) -> str:
    """Set a correlation ID for batch tracing.

    Args:
        cid: Correlation ID to set. If None, generates a new UUID.

    Returns:
        The correlation ID that was set.
    """
    if cid is None:
        cid = str(uuid.uuid4())[:8]
    _correlation_id.set(cid)
    return cid


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter for machine consumption."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            log_data["correlation_id"] = cid

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextFilter(logging.Filter):
    """Filter that adds the correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, use JSON structured format
        log_file: Optional file path to write logs to

    Examples:
        # Interactive use with rich console output
        setup_logging("DEBUG")

        # Inside a workflow host that collects stdout/stderr as JSON
        setup_logging("INFO", json_output=True)
    """
    if os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes"):
        json_output = True

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []
    root.addFilter(ContextFilter())

    # Results go to stdout, so logs go to stderr
    if json_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))

    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger by name.

    Args:
        name: Logger name (e.g., "gateway", "orders", "batch")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_order_event(
    logger: logging.Logger,
    event_type: str,
    symbol: str,
    **kwargs: Any,
) -> None:
    """Log an order-related event with standard fields.

    Args:
        logger: Logger instance
        event_type: Type of event (order_built, order_submitted, ...)
        symbol: Ticker symbol
        **kwargs: Additional fields (side, quantity, conid, order_id, ...)
    """
    if not logger.isEnabledFor(logging.INFO):
        return

    extra = {"symbol": symbol, "event_type": event_type}
    extra.update(kwargs)

    parts = [f"[{event_type.upper()}]", symbol]
    for key, value in kwargs.items():
        if value is not None:
            parts.append(f"{key}={value}")

    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        "(order)",
        0,
        " ".join(parts),
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)

    logger.handle(record)


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: BaseException,
    **context: Any,
) -> None:
    """Log an error with additional context.

    Args:
        logger: Logger instance
        message: Error message
        error: Exception that occurred
        **context: Additional context fields (item_index, operation, ...)
    """
    if not logger.isEnabledFor(logging.ERROR):
        return

    extra = {"error": str(error), "error_type": type(error).__name__}
    extra.update(context)

    record = logger.makeRecord(
        logger.name,
        logging.ERROR,
        "(error)",
        0,
        f"{message}: {error}",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)

    logger.handle(record)
