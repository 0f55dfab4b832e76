"""
JSON log records for the RentFlow back office.

One JSON object per line: the message, where it came from, the transaction id
and operation it ran under, and whatever the caller passed in ``extra``
(tenant_id, property_id, billing_reference, ...).
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from .context import get_operation, get_transaction_id

SERVICE = {"name": "rentflow-backend", "version": "0.1.0"}

# LogRecord attributes that carry no information once the message is rendered
_NOISE = ("msg", "args", "created", "msecs", "relativeCreated", "pathname", "taskName")


class StructuredFormatter(JsonFormatter):
    """JSON formatter adding correlation and source fields to every record."""

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
        log_record["transaction_id"] = getattr(
            record, "transaction_id", None
        ) or get_transaction_id()
        operation = getattr(record, "operation", None) or get_operation()
        if operation:
            log_record["operation"] = operation
        log_record["source"] = f"{record.name}:{record.funcName}:{record.lineno}"
        log_record["service"] = SERVICE

        if record.exc_info and record.exc_info[0] is not None:
            log_record["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }
            log_record.pop("exc_info", None)

        for field in _NOISE:
            log_record.pop(field, None)


def build_formatter() -> StructuredFormatter:
    return StructuredFormatter(fmt="%(message)s")
