"""Log handlers for HeartCoach."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.text import Text


class RichConsoleHandler(logging.Handler):
    """Log handler that writes colorized lines to a Rich console on stderr."""

    LEVEL_STYLES = {
        "DEBUG": "dim",
        "INFO": "blue",
        "WARNING": "yellow",
        "ERROR": "red bold",
        "CRITICAL": "red bold reverse",
    }

    def __init__(self, console: Console | None = None, show_path: bool = False) -> None:
        super().__init__()
        self.console = console or Console(stderr=True)
        self.show_path = show_path

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            text = Text(f"[{record.levelname:8}] ", style=self.LEVEL_STYLES.get(record.levelname, ""))
            text.append(message)
            if self.show_path:
                text.append(f" ({record.filename}:{record.lineno})", style="dim")
            self.console.print(text)
        except Exception:
            self.handleError(record)


class SafeRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that creates its log directory and writes UTF-8."""

    def __init__(self, filename: str | Path, max_bytes: int, backup_count: int) -> None:
        log_path = Path(filename)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )


class StreamHandlerWithFlush(logging.StreamHandler):
    """StreamHandler that flushes after each record.

    Streamlit buffers stderr; without the flush log lines show up late.
    """

    def __init__(self, stream=None) -> None:
        super().__init__(stream or sys.stderr)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            super().emit(record)
            self.flush()
        except Exception:
            self.handleError(record)
