"""JSON logging helpers shared by the API, storage and data-access layers."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict

from config import settings

_RESERVED_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName",
}
# Profile fields that never go to the log stream.
_REDACT_KEYS = {"email", "phone", "full_name", "access_token", "token"}
_EMAIL_PATTERN = re.compile(r"[\w.\-+]+@[\w.\-]+")
_URL_PATTERN = re.compile(r"https?://[^\s\"']+")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extra fields included."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", message),
            "message": message,
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_KEYS or key in payload:
                continue
            payload[key] = redact_for_log(value)
        return json.dumps(payload, default=str)


def configure_logging(level: int | str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.root.handlers.clear()
    logging.basicConfig(level=level or settings.log_level, handlers=[handler])


def redact_for_log(payload: Any) -> Any:
    """Mask URLs, emails and sensitive keys, recursing into lists and dicts."""

    if payload is None or isinstance(payload, (bool, int, float)):
        return payload
    if isinstance(payload, str):
        return _EMAIL_PATTERN.sub("[redacted-email]", _URL_PATTERN.sub("[redacted-url]", payload))
    if isinstance(payload, (list, tuple)):
        return [redact_for_log(item) for item in payload]
    if isinstance(payload, dict):
        return {
            key: "[redacted]" if key in _REDACT_KEYS else redact_for_log(value)
            for key, value in payload.items()
        }
    return str(payload)


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Emit ``event`` with redacted structured fields."""

    exc_info = fields.pop("exc_info", None)
    logger.log(level, event, exc_info=exc_info, extra={"event": event, **redact_for_log(fields)})


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "log_event", "redact_for_log"]
