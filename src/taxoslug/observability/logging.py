"""Structured logging for taxoslug.

Provides:
- JSON-formatted logs for log aggregation systems (ELK, Loki, etc.)
- Human-readable console logs for development
- Cache key / operation context propagated through context variables

Usage:
    from taxoslug.observability.logging import LogContext, configure_logging

    configure_logging(json_format=True, level="INFO")

    with LogContext(cache_key="taxoslug:taxonomy", operation="refresh"):
        logger.info("Refreshing taxonomy")  # Includes cache_key and operation
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

cache_key_var: contextvars.ContextVar[str] = contextvars.ContextVar("cache_key", default="")
operation_var: contextvars.ContextVar[str] = contextvars.ContextVar("operation", default="")

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "cache_key": cache_key_var,
    "operation": operation_var,
}

# Standard LogRecord attributes, excluded from the extra fields
_STANDARD_ATTRS = frozenset(
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
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


def _context_fields() -> dict[str, str]:
    fields = {}
    for name, var in _CONTEXT_VARS.items():
        value = var.get()
        if value:
            fields[name] = value
    return fields


class JsonFormatter(logging.Formatter):
    """JSON log formatter with cache context support.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "WARNING",
        "logger": "taxoslug.cache.tiered",
        "message": "Failed to save durable cache entry ...",
        "module": "tiered",
        "function": "set",
        "line": 42,
        "cache_key": "taxoslug:taxonomy"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(_context_fields())

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return orjson.dumps(log_data, default=str).decode("utf-8")


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | INFO | taxoslug.core.resolver | Loaded taxonomy | key=taxoslug:taxonomy
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()

        context_parts = []
        cache_key = cache_key_var.get()
        if cache_key:
            context_parts.append(f"key={cache_key}")
        operation = operation_var.get()
        if operation:
            context_parts.append(f"op={operation}")

        context = f" | {' '.join(context_parts)}" if context_parts else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure application-wide logging.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class LogContext:
    """Context manager for adding temporary log context.

    Usage:
        with LogContext(cache_key="taxoslug:taxonomy", operation="refresh"):
            logger.info("Refreshing")  # Includes cache_key and operation
    """

    def __init__(self, **kwargs: Any) -> None:
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> LogContext:
        for name, var in _CONTEXT_VARS.items():
            if name in self.extra:
                self._tokens[name] = var.set(str(self.extra[name]))
        return self

    def __exit__(self, *args: Any) -> None:
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        self._tokens.clear()
