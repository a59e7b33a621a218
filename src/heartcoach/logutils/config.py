"""Logging configuration for HeartCoach.

Defaults depend on where the app runs: a teacher's laptop during development,
the test suite, or a deployed Streamlit instance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

_TRUTHY = ("true", "1", "yes")


class Environment(Enum):
    """Application environment enumeration."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogOutput(Enum):
    """Log output destination enumeration."""

    CONSOLE = "console"
    FILE = "file"
    BOTH = "both"


@dataclass
class LogConfig:
    """Logging configuration container."""

    level: str = "INFO"
    output: LogOutput = LogOutput.CONSOLE
    json_format: bool = False
    use_rich: bool = True

    # Journal text and credentials never reach the log verbatim
    mask_sensitive: bool = True

    log_file: Path | None = None
    max_file_size: int = 5 * 1024 * 1024
    backup_count: int = 3

    # Per-module log levels, e.g. {"heartcoach.coach": "WARNING"}
    module_levels: dict[str, str] = field(default_factory=dict)

    extra_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> LogConfig:
        """Create configuration from environment variables.

        Environment variables:
            LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            LOG_OUTPUT: Output destination (console, file, both)
            LOG_JSON: Use JSON format on the console (true/false)
            LOG_RICH: Use Rich console (true/false)
            LOG_MASK_SENSITIVE: Mask sensitive data (true/false)
            LOG_FILE: Log file path
            LOG_BACKUP_COUNT: Number of rotated files to keep

        Returns:
            LogConfig instance configured from environment
        """
        config = cls.defaults_for(cls.detect_environment())

        if level := os.getenv("LOG_LEVEL"):
            config.level = level.upper()

        if output := os.getenv("LOG_OUTPUT"):
            try:
                config.output = LogOutput(output.lower())
            except ValueError:
                pass

        if json_format := os.getenv("LOG_JSON"):
            config.json_format = json_format.lower() in _TRUTHY

        if use_rich := os.getenv("LOG_RICH"):
            config.use_rich = use_rich.lower() in _TRUTHY

        if mask_sensitive := os.getenv("LOG_MASK_SENSITIVE"):
            config.mask_sensitive = mask_sensitive.lower() in _TRUTHY

        if log_file := os.getenv("LOG_FILE"):
            config.log_file = Path(log_file)

        if backup_count := os.getenv("LOG_BACKUP_COUNT"):
            try:
                config.backup_count = int(backup_count)
            except ValueError:
                pass

        return config

    @staticmethod
    def detect_environment() -> Environment:
        """Detect the current runtime environment."""
        env_name = os.getenv("HEARTCOACH_ENV", os.getenv("ENVIRONMENT", "")).lower()
        if env_name in ("prod", "production"):
            return Environment.PRODUCTION
        if env_name in ("test", "testing") or os.getenv("PYTEST_CURRENT_TEST"):
            return Environment.TESTING
        return Environment.DEVELOPMENT

    @classmethod
    def defaults_for(cls, env: Environment) -> LogConfig:
        """Get default configuration for an environment."""
        if env == Environment.PRODUCTION:
            return cls(level="INFO", output=LogOutput.BOTH, json_format=True, use_rich=False)

        if env == Environment.TESTING:
            return cls(level="DEBUG", use_rich=False)

        return cls(level="DEBUG", use_rich=True)


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Get the current logging configuration."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
    return _config


def set_config(config: LogConfig) -> None:
    """Set the logging configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset to default configuration from environment."""
    global _config
    _config = None
