"""
Structured Logging: JSON-Formatted Log Output

Provides:
- JSON-formatted log lines for log aggregation
- Context-scoped fields (e.g. the namespace a request works in)
- Log level configuration from MirrorConfig
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional, TextIO

from datamirror.core.config import MirrorConfig


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


# Context variable for scoped fields
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "asctime",
})


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object."""
    
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        data.update(_log_context.get())
        
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                data[key] = value
        
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(data, default=str)


class StructuredLogger:
    """
    Logger that attaches keyword fields to every record.
    
    Usage:
        logger = StructuredLogger("datamirror.demo")
        
        with logger.context(namespace="tenant-7"):
            logger.info("Hydrated state", records=12)
    """
    
    __slots__ = ("_logger", "_default_extra")
    
    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)
        self._default_extra: dict[str, Any] = {}
    
    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, **kwargs)
    
    def info(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, **kwargs)
    
    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, **kwargs)
    
    def error(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, **kwargs)
    
    def _log(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        extra = {**self._default_extra, **kwargs}
        self._logger.log(level.value, message, extra=extra)
    
    def with_extra(self, **kwargs: Any) -> StructuredLogger:
        """Create child logger with additional default fields."""
        child = StructuredLogger(self._logger.name)
        child._default_extra = {**self._default_extra, **kwargs}
        return child
    
    @staticmethod
    def context(**kwargs: Any) -> _LogContext:
        """Context manager for scoped fields."""
        return _LogContext(kwargs)


class _LogContext:
    """Context manager for adding fields to all logs."""
    
    __slots__ = ("_fields", "_token")
    
    def __init__(self, fields: dict[str, Any]) -> None:
        self._fields = fields
        self._token = None
    
    def __enter__(self) -> _LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self
    
    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure root logger for structured logging.
    
    Args:
        level: Minimum log level
        json_output: Use JSON formatting
        stream: Output stream (default: stderr)
    """
    root = logging.getLogger()
    root.setLevel(level.value)
    root.handlers.clear()
    
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level.value)
    
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))
    
    root.addHandler(handler)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_logging_from_config(
    config: MirrorConfig,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure logging from a validated MirrorConfig."""
    setup_logging(LogLevel[config.log_level], config.log_json, stream)
