"""Structured JSON logging for the booking and supervisor services.

Every logger lives under the ``hotelops`` namespace; the part after it is
reported as ``component``. Per-record context is passed with ``extra``::

    log.info("Order created", extra={"order_id": order.id})
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "hotelops"

# ``extra`` keys copied into the JSON line when set on a record.
CONTEXT_FIELDS: tuple[str, ...] = ("order_id", "service")


class _JsonFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.removeprefix(ROOT_LOGGER + ".")
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": component,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
        return json.dumps(entry, ensure_ascii=False)


def get_logger(component: str) -> logging.Logger:
    """Return the JSON logger for *component* (e.g. ``"booking.ledger"``).

    The stderr handler is attached once, to the shared ``hotelops``
    parent, so component loggers never duplicate lines.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")
