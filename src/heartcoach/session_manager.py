"""Session management for HeartCoach.

One app instance serves one person at a time (a student at a shared
classroom tablet, or the teacher). The session therefore holds at most one
signed-in student plus a separate flag for unlocked teacher access. Neither
is persisted; restarting the app signs everybody out.
"""

from datetime import datetime, timedelta
from typing import Optional

from heartcoach.database.models import Account
from heartcoach.logutils import get_logger

logger = get_logger(__name__)

# Inactivity timeout for a signed-in student
SESSION_TIMEOUT_MINUTES = 30

# Show a warning when this many minutes remain
WARNING_THRESHOLD_MINUTES = 5


class SessionManager:
    """Holds the current student and the teacher-unlocked flag."""

    def __init__(self, timeout_minutes: int = SESSION_TIMEOUT_MINUTES):
        self.timeout = timedelta(minutes=timeout_minutes)
        self._account: Optional[Account] = None
        self._created_at: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None
        self.teacher_unlocked = False

    def open(self, account: Account) -> None:
        """Make ``account`` the current student, replacing any previous one."""
        now = datetime.now()
        self._account = account
        self._created_at = now
        self._last_activity = now
        logger.info("Session opened", extra={"extra_data": {"student_name": account.name}})

    def close(self) -> None:
        """Sign the current student out. Safe to call when nobody is signed in."""
        if self._account is not None:
            logger.info("Session closed", extra={"extra_data": {"student_name": self._account.name}})
        self._account = None
        self._created_at = None
        self._last_activity = None

    def current(self) -> Optional[Account]:
        """The signed-in student, or None if signed out or timed out."""
        if self._account is None:
            return None

        if datetime.now() - self._last_activity > self.timeout:
            logger.info("Session expired", extra={"extra_data": {"student_name": self._account.name}})
            self.close()
            return None

        return self._account

    def refresh(self) -> bool:
        """Extend the session on activity.

        Returns:
            True if a live session was refreshed, False otherwise
        """
        if self.current() is None:
            return False
        self._last_activity = datetime.now()
        return True

    def remaining_minutes(self) -> Optional[int]:
        """Minutes left before the session expires, or None without a session."""
        if self.current() is None:
            return None
        remaining = self._last_activity + self.timeout - datetime.now()
        return max(0, int(remaining.total_seconds() // 60))

    def should_warn(self) -> bool:
        remaining = self.remaining_minutes()
        return remaining is not None and remaining <= WARNING_THRESHOLD_MINUTES

    def unlock_teacher(self) -> None:
        self.teacher_unlocked = True
        logger.info("Teacher access unlocked")

    def lock_teacher(self) -> None:
        self.teacher_unlocked = False
