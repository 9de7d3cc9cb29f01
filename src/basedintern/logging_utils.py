from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

from basedintern.logging_context import CORRELATION_FIELDS, current_log_context
from basedintern.security.redaction import redact_data

# Chatty at INFO; each honours its own <NAME>_LOG_LEVEL override.
_HTTP_LOGGERS = ("httpx", "httpcore")

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "extra"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: event name, level, correlation ids, then event fields.

    Event fields come from ``extra={"extra": {...}}`` or plain ``extra=`` keys. The whole
    payload is redacted before serialization.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = current_log_context()
        payload.update({field: context.get(field) for field in CORRELATION_FIELDS})

        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            payload.update(fields)
        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["error_type"] = exc_type.__name__
            payload["error_message"] = str(exc_value)
            payload["traceback"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["traceback"] = record.exc_text

        return json.dumps(redact_data(payload), default=str)


def _level_from(raw: str | int | None, default: int) -> int:
    if isinstance(raw, int):
        return raw
    if raw is None or not raw.strip():
        return default
    resolved = logging.getLevelName(raw.strip().upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(level: str | int | None = None) -> None:
    """Send everything through ``JsonFormatter`` on stderr.

    ``level`` falls back to ``LOG_LEVEL``. HTTP client loggers stay at WARNING unless the
    agent itself runs at DEBUG.
    """
    root_level = _level_from(level if level is not None else os.getenv("LOG_LEVEL"), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(root_level)

    http_default = logging.DEBUG if root_level <= logging.DEBUG else logging.WARNING
    for name in _HTTP_LOGGERS:
        override = os.getenv(f"{name.upper()}_LOG_LEVEL")
        logging.getLogger(name).setLevel(_level_from(override, http_default))
