"""Logging setup shared by the CLI and the HTTP host.

Two modes are supported: human-readable text, and single-line JSON for log
aggregators.  JSON output schema per line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "schema_reconciler.coordinator",
        "message": "Schema reconciliation finished: SUCCESS ...",
        "reconciliation": { ... },   // present on reconciliation summaries
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Structured summary emitted via ``extra={"reconciliation": ...}``.
        summary = getattr(record, "reconciliation", None)
        if summary is not None:
            payload["reconciliation"] = summary

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: str = "INFO", structured: bool = False) -> None:
    """Install a single root handler in text or JSON mode.

    Safe to call more than once; previous root handlers are replaced.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if structured else logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # SQLAlchemy echoes every statement at INFO when its logger inherits INFO.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
