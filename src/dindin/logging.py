"""JSON logging shared by the bot, the Celery workers and the CLI."""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

# keys the conversation machines pass through ``extra=``
CONTEXT_FIELDS = ("user_id", "flow", "step", "goal_id", "chat_id")
QUIET_LOGGERS = ("aiogram.event", "httpx", "openai", "sqlalchemy.engine")


class JsonLogFormatter(logging.Formatter):
    """Render one JSON object per record with the conversation context attached."""

    def __init__(self, context_fields: Iterable[str] = CONTEXT_FIELDS) -> None:
        super().__init__()
        self.context_fields = tuple(context_fields)

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in self.context_fields:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = getattr(value, "value", value)
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | None = None) -> None:
    """Send every record to stdout as JSON, replacing previously installed handlers."""

    numeric_level = _resolve_level(level)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    quiet_level = logging.WARNING if numeric_level > logging.DEBUG else logging.DEBUG
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


__all__ = ["CONTEXT_FIELDS", "JsonLogFormatter", "configure_logging"]
