"""Integration tests for the heartcoach CLI against a temporary database."""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from heartcoach.auth import get_api_key
from heartcoach.cli.main import AppContext, cli
from heartcoach.coach import CoachGateway
from heartcoach.database import Repository
from heartcoach.database.connection import close_pools
from heartcoach.database.models import Classified, MoodQuadrant

pytestmark = pytest.mark.integration


@pytest.fixture
def db_path(tmp_path):
    yield tmp_path / "cli.db"
    close_pools()


@pytest.fixture
def run(db_path):
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(cli, ["--db", str(db_path), *args], input=input)

    return _run


def test_init_db_and_status(run):
    result = run("init-db")
    assert result.exit_code == 0
    assert "Database initialized" in result.output

    result = run("status")
    assert result.exit_code == 0
    assert "accounts" in result.output
    assert "missing" in result.output


def test_init_db_refuses_existing_without_force(run):
    run("init-db")
    result = run("init-db")
    assert "--force" in result.output


def test_signup_and_duplicate(run):
    result = run("signup", "Mina", "--password", "1234")
    assert result.exit_code == 0
    assert "Welcome, Mina" in result.output

    result = run("signup", "mina", "--password", "5678")
    assert result.exit_code == 1
    assert "already in use" in result.output


def test_signup_rejects_bad_password(run):
    result = run("signup", "Mina", "--password", "12")
    assert result.exit_code == 1
    assert "four-digit" in result.output


def test_chat_runs_to_summary(run, db_path, fake_coach, monkeypatch):
    monkeypatch.setenv("HEARTCOACH_MAX_TURNS", "2")
    run("signup", "Mina", "--password", "1234")

    with patch.object(AppContext, "coach", return_value=fake_coach):
        result = run("chat", "mina", "--password", "1234", input="\nI tripped in PE.\nIt was embarrassing.\n")

    assert result.exit_code == 0, result.output
    assert "Please type a message first." in result.output
    assert "Thank you for sharing today." in result.output
    assert "calm" in result.output
    assert len(Repository(db_path).get_conversations("Mina")) == 1


def test_chat_wrong_password(run):
    run("signup", "Mina", "--password", "1234")
    result = run("chat", "Mina", "--password", "9999")
    assert result.exit_code == 1
    assert "Incorrect name or password." in result.output


def test_history_lists_and_shows(run, db_path, make_conversation):
    run("signup", "Mina", "--password", "1234")
    conversation = make_conversation("proud", conversation_id="conv_1")
    Repository(db_path).add_conversation("Mina", conversation)

    result = run("history", "Mina", "--password", "1234")
    assert result.exit_code == 0
    assert "conv_1" in result.output
    assert "proud" in result.output

    result = run("history", "Mina", "--password", "1234", "--show", "conv_1")
    assert "I feel proud." in result.output
    assert "Take care of yourself." in result.output


def test_reset_password_needs_teacher_password(run):
    run("signup", "Mina", "--password", "1234")

    result = run("reset-password", "Mina", input="1111\n")
    assert result.exit_code == 1
    assert "Incorrect teacher password" in result.output

    result = run("reset-password", "Mina", input="0000\n")
    assert result.exit_code == 0
    assert "reset to '0000'" in result.output

    result = run("history", "Mina", "--password", "0000")
    assert result.exit_code == 0


def test_teacher_password_change(run):
    result = run("teacher-password", "--old", "0000", "--new", "24680")
    assert result.exit_code == 0

    result = run("students", input="0000\n")
    assert result.exit_code == 1

    result = run("students", input="24680\n")
    assert result.exit_code == 0


def test_students_lists_accounts(run):
    run("signup", "Mina", "--password", "1234")
    run("signup", "Jun", "--password", "5678")

    result = run("students", input="0000\n")

    assert result.exit_code == 0
    assert "Mina" in result.output
    assert "Jun" in result.output


def test_dashboard_buckets(run, db_path, make_conversation):
    repo = Repository(db_path)
    repo.add_conversation("Mina", make_conversation("furious"))
    classifier = MagicMock(spec=CoachGateway)
    classifier.classify_mood.return_value = Classified(quadrant=MoodQuadrant.RED)

    with patch.object(AppContext, "coach", return_value=classifier):
        result = run("dashboard", input="0000\n")

    assert result.exit_code == 0, result.output
    assert "RED" in result.output
    assert "Mina" in result.output
    assert "furious" in result.output


def test_api_key_set_without_check_and_delete(run, db_path):
    result = run("api-key", "set", "--key", "sk-ant-test", "--no-check")
    assert result.exit_code == 0
    assert get_api_key(Repository(db_path)) == "sk-ant-test"

    result = run("api-key", "delete")
    assert result.exit_code == 0
    assert get_api_key(Repository(db_path)) is None


def test_api_key_set_rejected(run, db_path):
    with patch.object(CoachGateway, "validate_credential", return_value=False):
        result = run("api-key", "set", "--key", "sk-ant-bad")

    assert result.exit_code == 1
    assert get_api_key(Repository(db_path)) is None


def test_api_key_check_without_key(run):
    result = run("api-key", "check")
    assert result.exit_code == 1
    assert "No API key configured" in result.output
