"""Structured Logging - JSON and console formatters for the desktop store.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Store context (item_id, container_id, operation, sync_status, ...) is
      carried as `extra` fields and rendered by both formatters when present
    - JSON format by default, console format when log_format != "json"

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - ConsoleFormatter appends the same context as a compact `key=value` tail
    - setup_logging called once by bootstrap.open_desktop()
"""

import logging
import json
from datetime import datetime, timezone

_CONTEXT_FIELDS = (
    "item_id", "container_id", "operation", "sync_status", "debounce_key",
    "upload_id", "count", "error_code",
)


def _context(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in _CONTEXT_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable line with the store context appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        tail = " ".join(f"{key}={value}" for key, value in context.items())
        first, sep, rest = line.partition("\n")
        return f"{first} [{tail}]{sep}{rest}"


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install one root handler with the configured format."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else ConsoleFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
