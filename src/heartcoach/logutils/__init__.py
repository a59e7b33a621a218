"""HeartCoach logging infrastructure.

Provides:
- Structured JSON logging for hosted deployments
- Rich console output for development
- Correlation IDs that follow one conversation or dashboard load
- Masking of credentials and student journal text

Usage:
    from heartcoach.logutils import get_logger, with_context

    logger = get_logger(__name__)

    with with_context(operation="signup", role="student"):
        logger.info("Creating account")

    logger.info("Saved conversation", extra={"extra_data": {"turns": 5}})
"""

from .config import Environment, LogConfig, LogOutput, get_config, reset_config, set_config
from .context import LogContext, clear_context, get_context, with_context
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import RichConsoleHandler, SafeRotatingFileHandler, StreamHandlerWithFlush
from .logger import get_logger, reset_logging
from .masking import MASK, is_sensitive_key, mask_dict, mask_sensitive_string, redact_journal_text

__all__ = [
    "get_logger",
    "reset_logging",
    "with_context",
    "get_context",
    "clear_context",
    "LogContext",
    "LogConfig",
    "LogOutput",
    "Environment",
    "get_config",
    "set_config",
    "reset_config",
    "JSONFormatter",
    "StandardFormatter",
    "CompactFormatter",
    "RichConsoleHandler",
    "SafeRotatingFileHandler",
    "StreamHandlerWithFlush",
    "mask_sensitive_string",
    "mask_dict",
    "is_sensitive_key",
    "redact_journal_text",
    "MASK",
]
