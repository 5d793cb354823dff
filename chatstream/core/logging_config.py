"""Structured logging. API keys and bearer tokens are masked before output.

Extra fields are masked by key name (`api_key`, `authorization`, ...) or by value;
the rendered message and exception text are scrubbed of `sk-...` keys and
`Bearer ...` credentials.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from typing import Any

_SENSITIVE = ("token", "password", "secret", "key", "bearer", "authorization")

_CREDENTIAL = re.compile(r"\bsk-[A-Za-z0-9_\-]+|\bbearer\s+\S+", re.IGNORECASE)

_MASK = "[REDACTED]"

_RECORD_ATTRS = frozenset(
    (
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
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "asctime",
    )
)


def _is_sensitive(name: str) -> bool:
    lowered = name.lower()
    return any(s in lowered for s in _SENSITIVE)


def _scrub(text: str) -> str:
    return _CREDENTIAL.sub(_MASK, text)


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _redact_field(str(k), v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_redact(v) for v in obj]
    if isinstance(obj, str):
        return _MASK if _is_sensitive(obj) else _scrub(obj)
    return obj


def _redact_field(name: str, value: Any) -> Any:
    if _is_sensitive(name) and value not in (None, ""):
        return _MASK
    return _redact(value)


class StructuredFormatter(logging.Formatter):
    """JSON or key=value format; redacts sensitive extra fields."""

    def __init__(self, use_json: bool = True) -> None:
        super().__init__()
        self.use_json = use_json

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": _scrub(record.getMessage()),
        }
        if record.exc_info:
            log_dict["exception"] = _scrub(self.formatException(record.exc_info))
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_dict[key] = _redact_field(key, value)
        if self.use_json:
            return json.dumps(log_dict, default=str)
        return " ".join(f"{k}={v!r}" for k, v in log_dict.items())


def setup_logging(level: str = "INFO", use_json: bool = True) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter(use_json=use_json))
        root.addHandler(handler)
