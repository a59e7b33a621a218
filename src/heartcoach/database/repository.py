"""SQLite-backed store for HeartCoach.

Example:
    from heartcoach.database import Repository

    repo = Repository(Path("heartcoach.db"))
    for account in repo.list_accounts():
        print(account.name, len(repo.get_conversations(account.name)))
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from heartcoach.config import DEFAULT_DB_PATH

from .connection import get_db, init_database
from .models import Account, Conversation, FinalSummary, Message

TEACHER_PASSWORD_KEY = "teacher_password"
API_KEY_SECRET = "anthropic_api_key"


class Repository:
    """Durable ``JournalStore`` implementation.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Open (and if needed create) the database.

        Args:
            db_path: Path to SQLite database. Uses DATABASE_PATH if not provided.
        """
        self.db_path = Path(db_path or os.environ.get("DATABASE_PATH", DEFAULT_DB_PATH))
        init_database(self.db_path)

    # ==================== ACCOUNTS ====================

    def list_accounts(self) -> List[Account]:
        """All accounts in signup order."""
        with get_db(self.db_path) as conn:
            cursor = conn.execute("SELECT name, password_hash FROM accounts ORDER BY id")
            return [Account(**dict(row)) for row in cursor.fetchall()]

    def add_account(self, account: Account) -> None:
        """Insert a new account.

        Raises:
            sqlite3.IntegrityError: If the name exists in any casing.
        """
        with get_db(self.db_path) as conn:
            conn.execute(
                "INSERT INTO accounts (name, password_hash) VALUES (?, ?)",
                (account.name, account.password_hash),
            )

    def update_password_hash(self, name: str, password_hash: str) -> bool:
        """Replace the hash for the account stored under exactly ``name``.

        Returns:
            True if an account was updated.
        """
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                "UPDATE accounts SET password_hash = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE name = ? COLLATE BINARY",
                (password_hash, name),
            )
            return cursor.rowcount > 0

    # ==================== TEACHER ====================

    def get_teacher_password_hash(self) -> Optional[str]:
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (TEACHER_PASSWORD_KEY,)
            ).fetchone()
            return row["value"] if row else None

    def set_teacher_password_hash(self, password_hash: str) -> None:
        with get_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (TEACHER_PASSWORD_KEY, password_hash),
            )

    # ==================== CONVERSATIONS ====================

    def add_conversation(self, name: str, conversation: Conversation) -> None:
        """Append a finished conversation to a student's history."""
        messages = json.dumps(
            [message.model_dump() for message in conversation.messages], ensure_ascii=False
        )
        with get_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO conversations
                    (id, student_name, timestamp, messages, mood, summary_message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation.id,
                    name,
                    conversation.timestamp.isoformat(),
                    messages,
                    conversation.summary.mood,
                    conversation.summary.message,
                ),
            )

    def get_conversations(self, name: str) -> List[Conversation]:
        """A student's conversations in the order they were stored."""
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT * FROM conversations WHERE student_name = ? ORDER BY seq", (name,)
            )
            return [self._row_to_conversation(row) for row in cursor.fetchall()]

    def get_all_conversations(self) -> Dict[str, List[Conversation]]:
        """Every student's conversations keyed by stored account name."""
        result: Dict[str, List[Conversation]] = {}
        with get_db(self.db_path) as conn:
            cursor = conn.execute("SELECT * FROM conversations ORDER BY seq")
            for row in cursor.fetchall():
                result.setdefault(row["student_name"], []).append(self._row_to_conversation(row))
        return result

    @staticmethod
    def _row_to_conversation(row) -> Conversation:
        return Conversation(
            id=row["id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            messages=tuple(Message(**message) for message in json.loads(row["messages"])),
            summary=FinalSummary(mood=row["mood"], message=row["summary_message"]),
        )

    # ==================== SECRETS ====================

    def get_credential(self) -> Optional[str]:
        with get_db(self.db_path) as conn:
            row = conn.execute("SELECT value FROM secrets WHERE key = ?", (API_KEY_SECRET,)).fetchone()
            return row["value"] if row else None

    def set_credential(self, value: str) -> None:
        with get_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO secrets (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (API_KEY_SECRET, value),
            )

    def delete_credential(self) -> None:
        with get_db(self.db_path) as conn:
            conn.execute("DELETE FROM secrets WHERE key = ?", (API_KEY_SECRET,))
