"""Structured JSON logging correlated with the active search."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import sys
from typing import IO, Any

import orjson
from pydantic import BaseModel, SecretStr

from component_search.observability.context import current_log_context


PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty request-level loggers of the HTTP stack
QUIET_LOGGERS = {"httpx": "WARNING", "httpcore": "WARNING"}


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (set, frozenset)):
        items = list(value)
        try:
            return sorted(items)
        except TypeError:
            return items
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: record basics, log context, then ``extra`` fields.

    Extra fields named like credentials, and any ``SecretStr``, are redacted.
    """

    SENSITIVE_KEYS = frozenset({"password", "couchdb_password", "authorization", "token", "secret", "api_key"})
    MAX_MESSAGE_LEN = 2000
    MAX_EXTRA_LEN = 500
    _STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _clip(record.getMessage(), self.MAX_MESSAGE_LEN),
            **current_log_context().as_log_fields(),
        }
        if record.name.startswith("component_search."):
            payload["component"] = record.name.rsplit(".", 1)[-1]
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload.update(self._extras(record))
        return orjson.dumps(payload, default=_to_json).decode("utf-8")

    def _extras(self, record: logging.LogRecord) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in self._STANDARD_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.SENSITIVE_KEYS or isinstance(value, SecretStr):
                extras[key] = "[REDACTED]"
            elif isinstance(value, str):
                extras[key] = _clip(value, self.MAX_EXTRA_LEN)
            else:
                extras[key] = value
        return extras


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Replace the root handlers with a single stream handler.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit structured JSON logs when True, plain text otherwise
        logger_levels: Per-logger level overrides, applied after the defaults
        stream: Output stream, stdout when omitted

    Returns:
        The installed handler
    """
    root = logging.getLogger()
    root.setLevel(_level(level))
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)

    for logger_name, logger_level in {**QUIET_LOGGERS, **(logger_levels or {})}.items():
        logging.getLogger(logger_name).setLevel(_level(logger_level))
    return handler
