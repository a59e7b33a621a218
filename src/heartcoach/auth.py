"""Student accounts, teacher access and the AI API key.

Students sign up with a name and a four-digit PIN. The teacher shares one
password, which starts as ``0000`` until changed. Passwords are stored as
salted PBKDF2 hashes.
"""

import base64
import binascii
import hashlib
import hmac
import os
import re
import secrets
from typing import List, Optional

from heartcoach.database.models import Account
from heartcoach.database.store import JournalStore
from heartcoach.errors import (
    DuplicateNameError,
    InvalidCredentialsError,
    InvalidNameError,
    InvalidPasswordError,
    TeacherAccessRequiredError,
)
from heartcoach.logutils import get_logger, with_context
from heartcoach.session_manager import SessionManager

logger = get_logger(__name__)

# Password a student gets after a teacher resets it
DEFAULT_STUDENT_PASSWORD = "0000"

# Teacher password before anybody changes it
DEFAULT_TEACHER_PASSWORD = "0000"

PBKDF2_ITERATIONS = 200_000

_STUDENT_PASSWORD_RE = re.compile(r"^\d{4}$")
_TEACHER_PASSWORD_RE = re.compile(r"^\d{4,}$")


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    """Hash a password with a random salt.

    Args:
        password: Plain text password
        iterations: PBKDF2 rounds (defaults to PBKDF2_ITERATIONS)

    Returns:
        ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``
    """
    iterations = iterations or PBKDF2_ITERATIONS
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash.

    Args:
        password: Plain text password to verify
        password_hash: Hash produced by hash_password

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$")
        if algorithm != "pbkdf2_sha256":
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False

    actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(actual, expected)


def validate_student_password(password: str) -> None:
    """Raise InvalidPasswordError unless the password is exactly four digits."""
    if not _STUDENT_PASSWORD_RE.match(password or ""):
        raise InvalidPasswordError(
            "Student password must be four digits",
            "Please use a four-digit number as your password.",
        )


def validate_teacher_password(password: str) -> None:
    """Raise InvalidPasswordError unless the password is four or more digits."""
    if not _TEACHER_PASSWORD_RE.match(password or ""):
        raise InvalidPasswordError(
            "Teacher password must be at least four digits",
            "The new password must be a number with at least four digits.",
        )


class AuthService:
    """Account and teacher-access operations over an injected store."""

    def __init__(self, store: JournalStore, sessions: Optional[SessionManager] = None):
        self.store = store
        self.sessions = sessions or SessionManager()

    def _find_account(self, name: str) -> Optional[Account]:
        wanted = name.strip().lower()
        for account in self.store.list_accounts():
            if account.name.lower() == wanted:
                return account
        return None

    def signup(self, name: str, password: str) -> Account:
        """Create a student account.

        Raises:
            DuplicateNameError: If the name exists in any casing
            InvalidNameError: If the name is blank
            InvalidPasswordError: If the password is not four digits
        """
        name = (name or "").strip()
        with with_context(operation="signup", student_name=name, role="student"):
            if not name:
                raise InvalidNameError()
            validate_student_password(password)

            if self._find_account(name) is not None:
                logger.info("Signup rejected: name taken")
                raise DuplicateNameError(name)

            account = Account(name=name, password_hash=hash_password(password))
            self.store.add_account(account)
            logger.info("Account created")
            return account

    def login(self, name: str, password: str) -> Account:
        """Sign a student in and open the session.

        Returns:
            The stored account, with its original casing

        Raises:
            InvalidCredentialsError: Unknown name or wrong password
        """
        with with_context(operation="login", role="student"):
            account = self._find_account(name or "")
            if account is None or not verify_password(password or "", account.password_hash):
                logger.info("Login failed")
                raise InvalidCredentialsError()

            self.sessions.open(account)
            return account

    def logout(self) -> None:
        self.sessions.close()

    def current_user(self) -> Optional[Account]:
        return self.sessions.current()

    def list_students(self) -> List[Account]:
        """Accounts in signup order, for the teacher's student list."""
        return self.store.list_accounts()

    def reset_password(self, name: str) -> bool:
        """Reset a student's password to DEFAULT_STUDENT_PASSWORD.

        Requires teacher access on the session. Unknown names are ignored.

        Returns:
            True if an account was reset

        Raises:
            TeacherAccessRequiredError: Teacher access has not been unlocked
        """
        with with_context(operation="reset_password", student_name=name, role="teacher"):
            if not self.sessions.teacher_unlocked:
                raise TeacherAccessRequiredError()

            account = self._find_account(name or "")
            if account is None:
                logger.info("Password reset skipped: no such student")
                return False

            self.store.update_password_hash(account.name, hash_password(DEFAULT_STUDENT_PASSWORD))
            logger.info("Student password reset to default")
            return True

    def _teacher_hash(self) -> str:
        stored = self.store.get_teacher_password_hash()
        if stored is None:
            stored = hash_password(DEFAULT_TEACHER_PASSWORD)
            self.store.set_teacher_password_hash(stored)
            logger.info("Teacher password initialized to default")
        return stored

    def verify_teacher_access(self, password: str) -> bool:
        """Check the teacher password and unlock teacher access on success."""
        with with_context(operation="teacher_unlock", role="teacher"):
            ok = verify_password(password or "", self._teacher_hash())
            if ok:
                self.sessions.unlock_teacher()
            else:
                logger.info("Teacher unlock failed")
            return ok

    def change_teacher_password(self, old_password: str, new_password: str) -> None:
        """Replace the teacher password.

        Raises:
            InvalidCredentialsError: ``old_password`` is wrong
            InvalidPasswordError: ``new_password`` is not four or more digits
        """
        with with_context(operation="change_teacher_password", role="teacher"):
            if not verify_password(old_password or "", self._teacher_hash()):
                raise InvalidCredentialsError("The current password is incorrect.")
            validate_teacher_password(new_password)
            self.store.set_teacher_password_hash(hash_password(new_password))
            logger.info("Teacher password changed")


# ==================== API KEY ====================


def save_api_key(store: JournalStore, api_key: str) -> None:
    """Store the Anthropic API key, base64-obfuscated."""
    store.set_credential(base64.b64encode(api_key.strip().encode("utf-8")).decode("ascii"))
    logger.info("API key saved")


def get_api_key(store: JournalStore) -> Optional[str]:
    """Get the API key from the store, falling back to ANTHROPIC_API_KEY.

    A stored value that does not decode is deleted and treated as absent.
    """
    encoded = store.get_credential()
    if encoded:
        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError) as e:
            logger.error(f"Stored API key is unreadable, deleting it: {type(e).__name__}")
            store.delete_credential()

    return os.environ.get("ANTHROPIC_API_KEY") or None


def delete_api_key(store: JournalStore) -> None:
    store.delete_credential()
    logger.info("API key deleted")
