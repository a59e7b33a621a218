"""Pytest configuration and fixtures for HeartCoach tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Generator
from unittest.mock import MagicMock

import pytest

from heartcoach import auth as auth_module
from heartcoach.auth import AuthService
from heartcoach.coach import CoachGateway
from heartcoach.config import Settings
from heartcoach.database import InMemoryStore, Repository
from heartcoach.database.connection import close_pools
from heartcoach.database.models import Conversation, FinalSummary, Message
from heartcoach.session_manager import SessionManager

BASE_TIME = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Keep PBKDF2 cheap in tests; the format and checks are unchanged."""
    monkeypatch.setattr(auth_module, "PBKDF2_ITERATIONS", 1_000)


@pytest.fixture(autouse=True)
def no_env_api_key(monkeypatch):
    """Tests decide explicitly whether an API key exists."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(database_path=tmp_path / "heartcoach.db", ai_timeout=5.0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repo(tmp_path: Path) -> Generator[Repository, None, None]:
    """A Repository on a fresh temporary SQLite file."""
    repository = Repository(tmp_path / "test_heartcoach.db")
    yield repository
    close_pools()


@pytest.fixture
def sessions() -> SessionManager:
    return SessionManager()


@pytest.fixture
def auth(store: InMemoryStore, sessions: SessionManager) -> AuthService:
    return AuthService(store, sessions)


@pytest.fixture
def coach(store: InMemoryStore, settings: Settings) -> CoachGateway:
    return CoachGateway(store, settings)


@pytest.fixture
def fake_coach() -> MagicMock:
    """A CoachGateway stand-in with canned answers."""
    mock = MagicMock(spec=CoachGateway)
    mock.continue_conversation.side_effect = lambda history: f"How did that feel? ({len(history)})"
    mock.close_conversation.return_value = "Thank you for sharing today."
    mock.summarize.return_value = FinalSummary(mood="calm", message="You did great today.")
    return mock


@pytest.fixture
def make_text_response() -> Callable[[str], MagicMock]:
    """Build a Messages API response holding one text block."""

    def _make(text: str) -> MagicMock:
        response = MagicMock()
        response.stop_reason = "end_turn"
        response.content = [SimpleNamespace(type="text", text=text)]
        return response

    return _make


@pytest.fixture
def make_tool_response() -> Callable[[dict], MagicMock]:
    """Build a Messages API response holding one record_summary tool call."""

    def _make(payload) -> MagicMock:
        response = MagicMock()
        response.stop_reason = "tool_use"
        response.content = [
            SimpleNamespace(type="tool_use", id="toolu_01", name="record_summary", input=payload)
        ]
        return response

    return _make


@pytest.fixture
def make_conversation() -> Callable[..., Conversation]:
    """Build a finished conversation ``minutes`` after BASE_TIME."""

    def _make(mood: str, minutes: int = 0, conversation_id: str | None = None) -> Conversation:
        return Conversation(
            id=conversation_id or f"conv_{mood}_{minutes}",
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            messages=(
                Message(sender="ai", text="Hi! What happened today?"),
                Message(sender="user", text=f"I feel {mood}."),
                Message(sender="ai", text="Thank you for sharing."),
            ),
            summary=FinalSummary(mood=mood, message="Take care of yourself."),
        )

    return _make
