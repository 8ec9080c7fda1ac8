"""
BirthGuide - Structured Logging

Provides structured JSON logging with context injection for the active
labor session ID. Session IDs are masked in every log line.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional


# =============================================================================
# Context Variables
# =============================================================================

session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
operation_var: ContextVar[Optional[str]] = ContextVar('operation', default=None)


# =============================================================================
# Masking Utilities
# =============================================================================

def mask_session_id(sid: Optional[str]) -> Optional[str]:
    """Mask session ID to its first 12 characters."""
    if not sid:
        return None
    return sid[:12] if len(sid) > 12 else sid


# =============================================================================
# Structured Formatter
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that injects context variables.

    Output format:
    {
        "timestamp": "2024-11-30T00:00:00.000000Z",
        "level": "WARNING",
        "logger": "birthguide.core.engine",
        "session_id": "session_1a2b",
        "operation": "handle_decision_response",
        "message": "Emergency escalated",
        "data": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = session_id_var.get()
        if session_id:
            log_entry["session_id"] = mask_session_id(session_id)

        operation = operation_var.get()
        if operation:
            log_entry["operation"] = operation

        if hasattr(record, 'data') and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.
    Includes timestamp, level, logger, and message with context.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        context_parts = []

        session_id = session_id_var.get()
        if session_id:
            context_parts.append(f"session={mask_session_id(session_id)}")

        operation = operation_var.get()
        if operation:
            context_parts.append(f"op={operation}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"

        if hasattr(record, 'data') and record.data:
            message += " | " + json.dumps(record.data, ensure_ascii=False, default=str)

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production, False for development)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)


# =============================================================================
# Context Managers
# =============================================================================

class LogContext:
    """
    Context manager for setting log context variables.

    Usage:
        with LogContext(session_id="session_abc123", operation="advance_to_stage"):
            logger.info("Stage advanced")
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self._session_id = session_id
        self._operation = operation
        self._tokens = []

    def __enter__(self):
        if self._session_id:
            self._tokens.append((session_id_var, session_id_var.set(self._session_id)))
        if self._operation:
            self._tokens.append((operation_var, operation_var.set(self._operation)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False


# =============================================================================
# Structured Logger
# =============================================================================

class StructuredLogger:
    """
    Logger wrapper that supports structured data.

    Usage:
        logger = StructuredLogger(__name__)
        logger.warning("Emergency escalated", data={"emergency_type": "breech"})
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, data: Optional[dict] = None, **kwargs):
        extra = {}
        if data:
            extra['data'] = data

        self._logger.log(level, message, extra=extra, **kwargs)

    def debug(self, message: str, data: Optional[dict] = None, **kwargs):
        self._log(logging.DEBUG, message, data, **kwargs)

    def info(self, message: str, data: Optional[dict] = None, **kwargs):
        self._log(logging.INFO, message, data, **kwargs)

    def warning(self, message: str, data: Optional[dict] = None, **kwargs):
        self._log(logging.WARNING, message, data, **kwargs)

    def error(self, message: str, data: Optional[dict] = None, **kwargs):
        self._log(logging.ERROR, message, data, **kwargs)

    def exception(self, message: str, data: Optional[dict] = None, **kwargs):
        self._log(logging.ERROR, message, data, exc_info=True, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
