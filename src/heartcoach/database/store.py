"""Store interface shared by every HeartCoach module.

Auth, conversation and dashboard code receive a ``JournalStore`` instead of
reaching for a global. ``Repository`` (SQLite) is the durable backend;
``InMemoryStore`` lives for the process only and backs the tests.

Both assume a single writer: reads and writes are not locked against each
other, which is fine for one app instance on one machine but not for several
app servers sharing a database.
"""

from typing import Dict, List, Optional, Protocol, runtime_checkable

from .models import Account, Conversation


@runtime_checkable
class JournalStore(Protocol):
    """Key-value style persistence for accounts, conversations and secrets."""

    # users
    def list_accounts(self) -> List[Account]: ...

    def add_account(self, account: Account) -> None: ...

    def update_password_hash(self, name: str, password_hash: str) -> bool: ...

    # teacherPassword
    def get_teacher_password_hash(self) -> Optional[str]: ...

    def set_teacher_password_hash(self, password_hash: str) -> None: ...

    # conversations
    def add_conversation(self, name: str, conversation: Conversation) -> None: ...

    def get_conversations(self, name: str) -> List[Conversation]: ...

    def get_all_conversations(self) -> Dict[str, List[Conversation]]: ...

    # credential (separate namespace)
    def get_credential(self) -> Optional[str]: ...

    def set_credential(self, value: str) -> None: ...

    def delete_credential(self) -> None: ...


class InMemoryStore:
    """Dictionary-backed store; contents vanish with the process."""

    def __init__(self):
        self._accounts: List[Account] = []
        self._teacher_password_hash: Optional[str] = None
        self._conversations: Dict[str, List[Conversation]] = {}
        self._credential: Optional[str] = None

    def list_accounts(self) -> List[Account]:
        return [account.model_copy() for account in self._accounts]

    def add_account(self, account: Account) -> None:
        self._accounts.append(account.model_copy())

    def update_password_hash(self, name: str, password_hash: str) -> bool:
        for account in self._accounts:
            if account.name == name:
                account.password_hash = password_hash
                return True
        return False

    def get_teacher_password_hash(self) -> Optional[str]:
        return self._teacher_password_hash

    def set_teacher_password_hash(self, password_hash: str) -> None:
        self._teacher_password_hash = password_hash

    def add_conversation(self, name: str, conversation: Conversation) -> None:
        self._conversations.setdefault(name, []).append(conversation)

    def get_conversations(self, name: str) -> List[Conversation]:
        return list(self._conversations.get(name, []))

    def get_all_conversations(self) -> Dict[str, List[Conversation]]:
        return {name: list(convs) for name, convs in self._conversations.items()}

    def get_credential(self) -> Optional[str]:
        return self._credential

    def set_credential(self, value: str) -> None:
        self._credential = value

    def delete_credential(self) -> None:
        self._credential = None
