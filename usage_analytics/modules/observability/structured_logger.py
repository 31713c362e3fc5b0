"""Structured JSON log formatting for production log ingestion."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Attributes present on every LogRecord; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class LogEntry(BaseModel):
    """Structured log entry model.

    Attributes:
        timestamp: ISO 8601 timestamp in UTC
        level: Log severity level name
        service: Service name
        component: Logger name that emitted the record
        message: Human-readable message
        extra: Additional key-value metadata passed via ``extra=``
    """

    model_config = ConfigDict(use_enum_values=True)

    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    level: str
    service: str = "usage-analytics"
    component: Optional[str] = None
    message: str
    exception: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize log entry to JSON string."""
        data = self.model_dump(exclude_none=True)
        # Merge extra fields into top-level
        extra = data.pop("extra", {})
        data.update(extra)
        return json.dumps(data, default=str)


class StructuredFormatter(logging.Formatter):
    """Logging formatter that renders each record as one JSON line.

    Example:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter(service="usage-analytics"))

        # Output: {"timestamp": "2026-02-01T06:12:00+00:00", "level": "INFO",
        #          "service": "usage-analytics", "component": "usage-analytics",
        #          "message": "Captured request", "user_id": "u1"}
    """

    def __init__(self, service: str = "usage-analytics"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            service=self.service,
            component=record.name,
            message=record.getMessage(),
            exception=self.formatException(record.exc_info) if record.exc_info else None,
            extra=extra,
        )
        return entry.to_json()
