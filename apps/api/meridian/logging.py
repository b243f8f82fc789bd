from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from meridian.context import get_correlation_id, get_org_id


_BASE_RECORD_KEYS = set(logging.makeLogRecord({}).__dict__.keys())

# structured fields that may leave the process; anything else passed via extra= is dropped
_KNOWN_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "org_id",
        "domain",
        "from_state",
        "to_state",
        "entity_type",
        "entity_id",
        "rule_id",
        "event_id",
        "dedupe_key",
        "event_name",
        "job_id",
        "action_type",
        "amount",
        "outcome",
        "reason",
        "status",
        "error",
    }
)
_FIELD_LIMITS = {"error": 500, "reason": 200}


def _stamp_correlation_id(record: logging.LogRecord) -> None:
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_correlation_id(record)
        return True


_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _DEFAULT_RECORD_FACTORY(*args, **kwargs)
    _stamp_correlation_id(record)
    return record


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the whitelisted ``extra=`` fields of a record.

    ``org_id`` falls back to the organization of the current request when the
    caller did not pass one.
    """
    fields: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _BASE_RECORD_KEYS or key not in _KNOWN_FIELDS:
            continue
        limit = _FIELD_LIMITS.get(key)
        if limit is not None and isinstance(value, str):
            value = value[:limit]
        fields[key] = value

    if fields.get("org_id") is None:
        org_id = get_org_id()
        if org_id is not None:
            fields["org_id"] = org_id
    return fields


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = structured_fields(record)
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str)


class KeyValueLogFormatter(logging.Formatter):
    """Single-line ``key=value`` output for local runs (``LOG_FORMAT=text``)."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S"),
            record.levelname,
            record.name,
            record.getMessage(),
        ]
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            parts.append(f"correlation_id={correlation_id}")
        parts.extend(f"{key}={value}" for key, value in sorted(structured_fields(record).items()))
        line = " ".join(str(part) for part in parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging() -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_meridian_configured", False):
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    text_output = os.getenv("LOG_FORMAT", "json").lower() == "text"

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(KeyValueLogFormatter() if text_output else JsonLogFormatter())
    handler.addFilter(CorrelationIdFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(level)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    root_logger._meridian_configured = True  # type: ignore[attr-defined]
