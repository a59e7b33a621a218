"""Tests for the signed-in student session and teacher flag."""

from datetime import datetime, timedelta

import pytest

from heartcoach.database.models import Account
from heartcoach.session_manager import SessionManager

pytestmark = pytest.mark.unit


@pytest.fixture
def account():
    return Account(name="Mina", password_hash="x")


def test_new_manager_is_empty():
    manager = SessionManager()
    assert manager.current() is None
    assert manager.teacher_unlocked is False
    assert manager.remaining_minutes() is None


def test_open_and_close(account):
    manager = SessionManager()
    manager.open(account)
    assert manager.current() == account

    manager.close()
    assert manager.current() is None


def test_close_without_session_is_safe():
    SessionManager().close()


def test_session_expires_after_inactivity(account):
    manager = SessionManager(timeout_minutes=10)
    manager.open(account)
    manager._last_activity = datetime.now() - timedelta(minutes=11)

    assert manager.current() is None
    assert manager.refresh() is False


def test_refresh_extends_session(account):
    manager = SessionManager(timeout_minutes=10)
    manager.open(account)
    manager._last_activity = datetime.now() - timedelta(minutes=9)

    assert manager.refresh() is True
    assert manager.remaining_minutes() >= 9


def test_should_warn_near_expiry(account):
    manager = SessionManager(timeout_minutes=30)
    manager.open(account)
    assert manager.should_warn() is False

    manager._last_activity = datetime.now() - timedelta(minutes=27)
    assert manager.should_warn() is True


def test_teacher_flag_is_independent_of_student(account):
    manager = SessionManager()
    manager.unlock_teacher()
    manager.open(account)
    manager.close()

    assert manager.teacher_unlocked is True
    manager.lock_teacher()
    assert manager.teacher_unlocked is False
