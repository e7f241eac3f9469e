"""Structured logging configuration with recovery context.

This module provides structured JSON logging with:
- Correlation IDs for tracing a caller session across ledger calls
- Contextual fields (principal, guardian)
- Masking of share ciphertext and key material in extra fields
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from .constants import LoggingConfig

if TYPE_CHECKING:
    from .config import RecoverySettings

# Context variables for correlation tracking
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
principal_var: ContextVar[Optional[str]] = ContextVar("principal", default=None)
guardian_id_var: ContextVar[Optional[str]] = ContextVar("guardian_id", default=None)

_CONTEXT_FIELDS = ("correlation_id", "principal", "guardian_id")

_RESERVED_ATTRS = frozenset({
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
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
    *_CONTEXT_FIELDS,
})


def mask_sensitive_data(data: Any, mask_pattern: str = LoggingConfig.MASK_PATTERN) -> Any:
    """Recursively mask values whose keys name ciphertext or key material."""
    if isinstance(data, dict):
        return {
            key: mask_pattern if key in LoggingConfig.SENSITIVE_FIELDS
            else mask_sensitive_data(value, mask_pattern)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(mask_sensitive_data(item, mask_pattern) for item in data)
    return data


class RecoveryContextFilter(logging.Filter):
    """Logging filter that adds correlation ID and recovery context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        record.principal = principal_var.get()
        record.guardian_id = guardian_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        log_data.update(mask_sensitive_data(extra))

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (True) or simple format (False)
        log_file: Optional file path for logging output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(correlation_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RecoveryContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RecoveryContextFilter())
        root_logger.addHandler(file_handler)


def configure_logging(settings: "RecoverySettings") -> None:
    """Apply the logging section of RecoverySettings."""
    setup_logging(level=settings.log_level, json_format=settings.log_json)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return f"cor_{uuid.uuid4().hex[:16]}"


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        principal: Optional[str] = None,
        guardian_id: Optional[str] = None,
    ):
        self.correlation_id = correlation_id
        self.principal = principal
        self.guardian_id = guardian_id
        self._tokens = []

    def __enter__(self) -> "LogContext":
        for var, value in (
            (correlation_id_var, self.correlation_id),
            (principal_var, self.principal),
            (guardian_id_var, self.guardian_id),
        ):
            if value:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
