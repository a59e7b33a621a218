"""Runtime configuration for HeartCoach."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path.cwd() / "heartcoach.db"

# Conversation length in user turns
DEFAULT_MAX_TURNS = 5

DEFAULT_CHAT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_SUMMARY_MODEL = "claude-haiku-3-5-20241022"


@dataclass
class Settings:
    """Application settings."""

    database_path: Path = DEFAULT_DB_PATH
    chat_model: str = DEFAULT_CHAT_MODEL
    summary_model: str = DEFAULT_SUMMARY_MODEL
    max_turns: int = DEFAULT_MAX_TURNS
    ai_timeout: float = 30.0
    session_timeout_minutes: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        max_turns = int(os.environ.get("HEARTCOACH_MAX_TURNS", DEFAULT_MAX_TURNS))
        if max_turns < 1:
            raise ValueError("HEARTCOACH_MAX_TURNS must be at least 1")

        return cls(
            database_path=Path(os.environ.get("DATABASE_PATH", str(DEFAULT_DB_PATH))),
            chat_model=os.environ.get("HEARTCOACH_CHAT_MODEL", DEFAULT_CHAT_MODEL),
            summary_model=os.environ.get("HEARTCOACH_SUMMARY_MODEL", DEFAULT_SUMMARY_MODEL),
            max_turns=max_turns,
            ai_timeout=float(os.environ.get("HEARTCOACH_AI_TIMEOUT", "30")),
            session_timeout_minutes=int(
                os.environ.get("HEARTCOACH_SESSION_TIMEOUT_MINUTES", "30")
            ),
        )
