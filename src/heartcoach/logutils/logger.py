"""Logger factory for HeartCoach."""

from __future__ import annotations

import logging

from .config import LogConfig, LogOutput, get_config
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import RichConsoleHandler, SafeRotatingFileHandler, StreamHandlerWithFlush

_configured_loggers: set[str] = set()


def get_logger(name: str | None = None, config: LogConfig | None = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (usually __name__)
        config: Optional LogConfig to use

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)

    key = name or "root"
    if key not in _configured_loggers:
        _configure_logger(logger, config or get_config())
        _configured_loggers.add(key)

    return logger


def _configure_logger(logger: logging.Logger, config: LogConfig) -> None:
    level = config.module_levels.get(logger.name, config.level)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    if logger.name != "root":
        logger.propagate = False

    for handler in _create_handlers(config):
        logger.addHandler(handler)


def _create_handlers(config: LogConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if config.output in (LogOutput.CONSOLE, LogOutput.BOTH):
        if config.json_format:
            handler: logging.Handler = StreamHandlerWithFlush()
            handler.setFormatter(
                JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
            )
        elif config.use_rich:
            handler = RichConsoleHandler()
            handler.setFormatter(CompactFormatter(mask_sensitive=config.mask_sensitive))
        else:
            handler = StreamHandlerWithFlush()
            handler.setFormatter(StandardFormatter(mask_sensitive=config.mask_sensitive))
        handlers.append(handler)

    if config.output in (LogOutput.FILE, LogOutput.BOTH) and config.log_file:
        handler = SafeRotatingFileHandler(
            filename=config.log_file,
            max_bytes=config.max_file_size,
            backup_count=config.backup_count,
        )
        # Files are always JSON
        handler.setFormatter(
            JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
        )
        handlers.append(handler)

    return handlers


def reset_logging() -> None:
    """Drop handlers from every logger configured so far."""
    for name in _configured_loggers:
        logging.getLogger(None if name == "root" else name).handlers.clear()
    _configured_loggers.clear()
