"""Log formatters for structured and human-readable output."""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from .context import get_context
from .masking import mask_dict, mask_sensitive_string


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging output.

    One object per line, suitable for shipping from a hosted Streamlit
    instance to a log collector.
    """

    def __init__(
        self,
        mask_sensitive: bool = True,
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the JSON formatter.

        Args:
            mask_sensitive: Mask sensitive data in log messages
            extra_fields: Additional static fields to include in every log
        """
        super().__init__()
        self.mask_sensitive = mask_sensitive
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        message = record.getMessage()
        if self.mask_sensitive:
            message = mask_sensitive_string(message)

        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "context": get_context().to_dict(),
        }

        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        extra = getattr(record, "extra_data", None)
        if extra:
            if self.mask_sensitive and isinstance(extra, dict):
                extra = mask_dict(extra)
            log_data["extra"] = extra

        log_data.update(self.extra_fields)
        return json.dumps(log_data, default=str, ensure_ascii=False)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter with correlation id.

    Format: TIMESTAMP - LEVEL - LOGGER - [CORRELATION_ID] - MESSAGE
    """

    DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - [%(correlation_id)s] - %(message)s"
    DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(self, mask_sensitive: bool = True) -> None:
        super().__init__(fmt=self.DEFAULT_FORMAT, datefmt=self.DEFAULT_DATE_FORMAT)
        self.mask_sensitive = mask_sensitive

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = get_context().correlation_id

        original_msg = record.msg
        if self.mask_sensitive and isinstance(original_msg, str):
            record.msg = mask_sensitive_string(original_msg)
        try:
            return super().format(record)
        finally:
            record.msg = original_msg


class CompactFormatter(logging.Formatter):
    """Compact formatter for CLI output.

    Format: [CORRELATION_ID] MESSAGE
    """

    def __init__(self, mask_sensitive: bool = True) -> None:
        super().__init__()
        self.mask_sensitive = mask_sensitive

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if self.mask_sensitive:
            message = mask_sensitive_string(message)
        return f"[{get_context().correlation_id}] {message}"
