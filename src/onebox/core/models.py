"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    """Closed set of labels assigned to incoming mail."""

    INTERESTED = "Interested"
    MEETING_BOOKED = "Meeting Booked"
    NOT_INTERESTED = "Not Interested"
    SPAM = "Spam"
    OUT_OF_OFFICE = "Out of Office"
    UNCATEGORIZED = "Uncategorized"

    @classmethod
    def from_label(cls, label: str) -> Category | None:
        """Return the category whose label equals ``label`` exactly."""
        for category in cls:
            if category.value == label:
                return category
        return None


class SessionState(str, Enum):
    """Lifecycle of a single account session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    BACKFILLING = "backfilling"
    LIVE = "live"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True, slots=True)
class EmailAccount:
    """Static credentials for one mailbox; identity is ``id``."""

    id: str
    user: str
    password: str = field(repr=False)
    host: str
    port: int


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class Email:
    """Normalized email representation ready for categorisation and storage."""

    id: str
    account_id: str
    message_id: str
    sender: str
    to: tuple[str, ...]
    subject: str
    body: str
    date: datetime
    folder: str
    category: Category | None = None
    read: bool = False
    attachments: tuple[str, ...] = ()


@dataclass(slots=True)
class RawMessage:
    """Raw RFC822 payload paired with its IMAP UID."""

    uid: int
    payload: bytes


@dataclass(slots=True)
class SearchFilter:
    """Criteria accepted by :meth:`EmailStore.query`."""

    text: str | None = None
    account_id: str | None = None
    folder: str | None = None
    category: Category | None = None
    offset: int = 0
    limit: int = 50


@dataclass(slots=True)
class ReplySuggestion:
    """Suggested reply text for a stored email."""

    email_id: str
    body: str
    confidence: float
    provider: str
    generated_at: datetime
    used_fallback: bool


__all__ = [
    "Category",
    "Email",
    "EmailAccount",
    "RawMessage",
    "ReplySuggestion",
    "SearchFilter",
    "SessionState",
]
