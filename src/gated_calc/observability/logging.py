"""Structured logging configuration for Gated Calc.

Provides JSON-formatted structured logging with contextual fields
(user_id, session_id, operation_id) via contextvars.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context variables for session-scoped logging fields
_user_id: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
_session_id: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
_operation_id: ContextVar[Optional[str]] = ContextVar("operation_id", default=None)

_CONTEXT_VARS = {
    "user_id": _user_id,
    "session_id": _session_id,
    "operation_id": _operation_id,
}


def set_log_context(
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    operation_id: Optional[str] = None,
):
    """Set contextual logging fields for the current context."""
    if user_id is not None:
        _user_id.set(user_id)
    if session_id is not None:
        _session_id.set(session_id)
    if operation_id is not None:
        _operation_id.set(operation_id)


def clear_log_context():
    """Clear all contextual logging fields."""
    _user_id.set(None)
    _session_id.set(None)
    _operation_id.set(None)


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
    """Set context fields for the duration of a block, then restore them."""
    tokens = []
    for name, value in fields.items():
        var = _CONTEXT_VARS[name]
        tokens.append((var, var.set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def get_log_context() -> dict:
    """Return the context fields that are currently set."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with context fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_entry.update(get_log_context())

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable log formatter with context fields for development."""

    _SHORT_NAMES = {"user_id": "user", "session_id": "session", "operation_id": "op"}

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{self.formatTime(record, self.datefmt)}]",
            f"{record.levelname:8s}",
            f"{record.name}:",
            record.getMessage(),
        ]

        ctx_parts = [
            f"{self._SHORT_NAMES[name]}={value}"
            for name, value in get_log_context().items()
        ]
        if ctx_parts:
            parts.append(f"[{', '.join(ctx_parts)}]")

        msg = " ".join(parts)

        if record.exc_info and record.exc_info[1]:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def configure_logging(environment: str = "development", log_level: str = "WARNING"):
    """Configure structured logging for the application.

    Logs go to stderr so they never interleave with the console menus on
    stdout.

    Args:
        environment: "production" for JSON output, anything else for human-readable.
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.WARNING))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter(
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger.addHandler(handler)

    # Quiet noisy third-party loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
