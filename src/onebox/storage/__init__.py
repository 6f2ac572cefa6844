"""Storage layer for normalized emails."""

from .memory import InMemoryEmailStore
from .sqlite import SqliteEmailStore

__all__ = ["InMemoryEmailStore", "SqliteEmailStore"]
