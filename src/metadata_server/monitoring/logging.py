"""
Structured JSON logging with correlation IDs.

This module provides the logging used across the service:
- Structured JSON records with a consistent schema
- Request correlation IDs for tracing a lookup through the logs
- Helpers for request, lookup and reload events
- Optional log file output
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

ROOT_LOGGER_NAME = "metadata_server"

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class StructuredLogger:
    """
    Structured JSON logger with correlation ID support.

    Every record carries:
    - Timestamp in ISO format
    - Correlation ID of the request being served, if any
    - Event fields passed as keyword arguments
    """

    def __init__(
        self,
        name: str,
        level: Optional[int] = None,
        include_correlation_id: bool = True,
        include_timestamp: bool = True,
        include_logger_name: bool = True
    ):
        """Initialize structured logger."""
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

        self.include_correlation_id = include_correlation_id
        self.include_timestamp = include_timestamp
        self.include_logger_name = include_logger_name

    def set_correlation_id(self, correlation_id: str) -> None:
        """Set correlation ID for current context."""
        _correlation_id.set(correlation_id)

    def get_correlation_id(self) -> Optional[str]:
        """Get current correlation ID."""
        return _correlation_id.get()

    def clear_correlation_id(self) -> None:
        """Clear correlation ID from current context."""
        _correlation_id.set(None)

    def _create_log_entry(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Create structured log entry."""
        entry = {
            "message": message,
            "level": level,
        }

        if self.include_timestamp:
            entry["timestamp"] = datetime.now(timezone.utc).isoformat()

        if self.include_logger_name:
            entry["logger"] = self.logger.name

        if self.include_correlation_id:
            correlation_id = self.get_correlation_id()
            if correlation_id:
                entry["correlation_id"] = correlation_id

        entry.update(kwargs)
        return entry

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        entry = self._create_log_entry(logging.getLevelName(level), message, **kwargs)
        self.logger.log(
            level,
            json.dumps(entry, default=str),
            exc_info=exc_info,
            extra={"structured": True},
        )

    def info(self, message: str, **kwargs) -> None:
        """Log info message with structured data."""
        self._log(logging.INFO, message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with structured data."""
        self._log(logging.DEBUG, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with structured data."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with structured data."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        """Log critical message with structured data."""
        self._log(logging.CRITICAL, message, **kwargs)

    def log_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_ms: float,
        client: Optional[str] = None,
        **kwargs
    ) -> None:
        """Log HTTP request with timing."""
        self.info(
            "HTTP request completed",
            event_type="http_request",
            method=method,
            endpoint=endpoint,
            status_code=status_code,
            duration_ms=duration_ms,
            client=client,
            **kwargs
        )

    def log_lookup(
        self,
        version: str,
        client: str,
        key: str,
        found: bool,
        **kwargs
    ) -> None:
        """Log the outcome of a metadata lookup."""
        self.info(
            f"{'OK' if found else 'Error'}: {key or '/'}",
            event_type="lookup",
            version=version,
            client=client,
            key=key,
            found=found,
            **kwargs
        )

    def log_reload(
        self,
        source: str,
        status: str,
        duration_ms: float,
        versions: Optional[List[str]] = None,
        error: Optional[str] = None,
        **kwargs
    ) -> None:
        """Log an answers reload."""
        fields = {
            "event_type": "reload",
            "source": source,
            "status": status,
            "duration_ms": duration_ms,
        }
        if versions is not None:
            fields["versions"] = versions
        if error is not None:
            fields["error"] = error
        fields.update(kwargs)

        if status == "success":
            self.info("Loaded answers", **fields)
        else:
            self.error("Failed to load answers", **fields)

    def log_error(
        self,
        error_type: str,
        error_message: str,
        endpoint: Optional[str] = None,
        exception: Optional[Exception] = None,
        **kwargs
    ) -> None:
        """Log error with context."""
        error_data = {
            "event_type": "error",
            "error_type": error_type,
            "error_message": error_message,
        }

        if endpoint:
            error_data["endpoint"] = endpoint

        if exception:
            error_data["exception_type"] = type(exception).__name__
            error_data["exception_module"] = getattr(exception, "__module__", "unknown")

        error_data.update(kwargs)

        self.error("Error occurred", **error_data)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured and plain log records."""

    RESERVED_ATTRS = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "exc_info", "exc_text", "stack_info",
        "taskName", "structured", "message",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        if getattr(record, "structured", False):
            if not record.exc_info:
                return record.getMessage()
            log_entry = json.loads(record.getMessage())
        else:
            log_entry = {
                "message": record.getMessage(),
                "level": record.levelname,
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "logger": record.name,
            }
            correlation_id = _correlation_id.get()
            if correlation_id:
                log_entry["correlation_id"] = correlation_id

            for key, value in record.__dict__.items():
                if key not in self.RESERVED_ATTRS:
                    log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


# Global logger instances
_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str = ROOT_LOGGER_NAME, **kwargs) -> StructuredLogger:
    """Get or create a structured logger instance."""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, **kwargs)
    return _loggers[name]


def set_log_level(level: Union[str, int]) -> None:
    """Set log level for the service's loggers."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


def configure_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    format_type: str = "json"
) -> logging.Handler:
    """
    Configure the service's logging.

    Args:
        level: Log level name or number
        log_file: Append logs to this file instead of stderr
        format_type: ``json`` for structured records, anything else for plain text

    Returns:
        The installed handler

    Raises:
        OSError: If the log file cannot be opened
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    root.addHandler(handler)
    root.propagate = False
    set_log_level(level)
    return handler
