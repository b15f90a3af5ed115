"""
Structured JSON Logging

One JSON object per line on stdout. Each record carries the request id and,
once the webhook sender is identified, the inspector being served.
Usage: gcloud logging read 'jsonPayload.inspector_id=42'
"""

import logging
import json
import sys
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
inspector_id_var: ContextVar[Optional[int]] = ContextVar("inspector_id", default=None)

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai")


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line (GCP structured logging compatible)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {"request_id": request_id_var.get(), "inspector_id": inspector_id_var.get()}
        entry.update({key: value for key, value in context.items() if value is not None})

        action = getattr(record, "action", None)
        if action:
            entry["action"] = action
        entry.update(getattr(record, "extra_data", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger to stdout as JSON at the given level."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def bind_inspector(inspector_id: Optional[int]) -> None:
    """Attach (or with None, detach) the inspector to every later log line of this request."""
    inspector_id_var.set(inspector_id)


def log_action(logger: logging.Logger, level: str, action: str, message: str, **kwargs) -> None:
    """
    Log a structured event.

    Args:
        logger: Logger instance
        level: "debug", "info", "warning" or "error"
        action: Event identifier, e.g. "webhook_rejected"
        message: Human-readable message
        **kwargs: Extra fields merged into the JSON line

    Example:
        log_action(logger, "info", "action_executed", "Executed GET_JOBS",
                   action_type="GET_JOBS", inspector_id=12)
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        extra={"action": action, "extra_data": kwargs},
    )
