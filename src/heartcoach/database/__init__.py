"""Persistence for accounts, conversations and secrets."""

from .repository import Repository
from .store import InMemoryStore, JournalStore

__all__ = ["InMemoryStore", "JournalStore", "Repository"]
