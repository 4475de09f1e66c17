# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Structured JSON logging: one JSON line per record on stdout.

Persona operations pass their context through ``extra`` so the fields land
as top-level keys instead of being buried in the message text::

    logger.info("Persona created", extra={"persona_id": pid, "email": email})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from agenda.core.config import settings

# Keys copied from ``extra`` into the JSON line when present on the record.
CONTEXT_FIELDS = (
    "request_id",
    "persona_id",
    "email",
    "friend_count",
    "friend_links_removed",
)


def persona_context(record: Optional[Dict[str, Any]] = None, **fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` dict for a persona record plus any explicit fields."""
    context: Dict[str, Any] = {}
    if record:
        context["persona_id"] = record.get("id")
        context["email"] = record.get("email")
    context.update(fields)
    return {k: v for k, v in context.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON object carrying the persona context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value
        if record.exc_info and record.exc_info[1]:
            log_data["error"] = str(record.exc_info[1])
            log_data["error_type"] = type(record.exc_info[1]).__name__
        return json.dumps(log_data, ensure_ascii=False, default=str)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger writing JSON lines to stdout, configured once per name."""
    logger = logging.getLogger(name or settings.SERVICE_NAME)
    if not logger.handlers:
        logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    return logger
