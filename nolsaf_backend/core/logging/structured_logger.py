"""
Log record formatting.

JSON output is the default; plain text is available for local runs. Values
under credential-like keys are replaced before a record is written, however
deeply they are nested in ``extra``.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "nolsaf-backend"

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "current_password",
        "new_password",
        "totp_code",
        "backup_code",
        "booking_code",
        "access_token",
        "refresh_token",
        "authorization",
        "client_secret",
        "secret",
        "signature",
    }
)

JSON_FORMAT = "%(timestamp)s %(level)s %(request_id)s %(message)s"
TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(message)s"

# LogRecord internals that add nothing to the JSON output
_DROPPED = ("msg", "args", "created", "msecs", "relativeCreated", "pathname", "filename")


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def describe_exception(exc_info) -> dict[str, Any]:
    exc_type, exc, tb = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc),
        "stacktrace": traceback.format_exception(exc_type, exc, tb),
    }


class NolsafJsonFormatter(JsonFormatter):
    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = SERVICE_NAME

        if record.exc_info:
            log_record["error"] = describe_exception(record.exc_info)
            log_record.pop("exc_info", None)

        for key in _DROPPED:
            log_record.pop(key, None)
        for key in list(log_record):
            if key.lower() in SENSITIVE_KEYS:
                log_record[key] = REDACTED
            elif isinstance(log_record[key], (dict, list, tuple)):
                log_record[key] = redact(log_record[key])


class TextFormatter(logging.Formatter):
    """Plain lines; an exception captured off-thread is appended as its stacktrace."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        error = getattr(record, "error", None)
        if isinstance(error, dict) and error.get("stacktrace"):
            line = f"{line}\n{''.join(error['stacktrace']).rstrip()}"
        return line


def build_formatter(use_json_format: bool) -> logging.Formatter:
    if use_json_format:
        return NolsafJsonFormatter(fmt=JSON_FORMAT)
    return TextFormatter(TEXT_FORMAT)
