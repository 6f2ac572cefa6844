"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from .models import Category, Email, EmailAccount, RawMessage, SearchFilter


class AccountNotFoundError(LookupError):
    """Raised when a manual resync names an account that is not configured."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id


class MessageParseError(ValueError):
    """Raised when a raw message cannot be normalized."""


class TransportError(RuntimeError):
    """Wrap low level mail transport errors with additional context."""


class StoreError(RuntimeError):
    """Raised when the email store cannot complete a request."""


class NotificationError(RuntimeError):
    """Raised when a notification channel rejects or cannot deliver a message."""


class TransportListener(Protocol):
    """Receiver of connection events emitted by a :class:`MailTransport`."""

    def on_ready(self) -> None:
        """The connection is authenticated and ready for commands."""
        raise NotImplementedError

    def on_new_mail(self, count: int) -> None:
        """The server reported that the mailbox now holds ``count`` messages."""
        raise NotImplementedError

    def on_error(self, error: BaseException) -> None:
        """A transport level error occurred; the connection may recover."""
        raise NotImplementedError

    def on_end(self) -> None:
        """The connection was closed by the peer or the network."""
        raise NotImplementedError


class MailTransport(Protocol):
    """One connection to a remote mailbox."""

    def connect(self) -> None:
        """Open the connection and authenticate; emits ``on_ready``."""
        raise NotImplementedError

    def open_inbox(self) -> int | None:
        """Select the mirrored mailbox and return its UIDVALIDITY, if known."""
        raise NotImplementedError

    def search_since(self, since: datetime) -> Sequence[int]:
        """Return UIDs of messages received on or after ``since``."""
        raise NotImplementedError

    def search_unseen(self) -> Sequence[int]:
        """Return UIDs of messages without the seen flag."""
        raise NotImplementedError

    def fetch(self, uids: Sequence[int]) -> Iterable[RawMessage]:
        """Yield raw payloads for ``uids`` without marking them as read."""
        raise NotImplementedError

    def start_listening(self) -> None:
        """Begin delivering ``on_new_mail`` push notifications."""
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources without emitting ``on_end``."""
        raise NotImplementedError


class TransportFactory(Protocol):
    """Build a transport for an account, wired to ``listener``."""

    def __call__(
        self, account: EmailAccount, listener: TransportListener
    ) -> MailTransport:
        raise NotImplementedError


class EmailStore(Protocol):
    """Searchable persistence for normalized emails."""

    def upsert(self, email_id: str, email: Email) -> None:
        """Insert or replace the email stored under ``email_id``."""
        raise NotImplementedError

    def query(self, search: SearchFilter) -> list[Email]:
        """Return matching emails, newest first."""
        raise NotImplementedError

    def get(self, email_id: str) -> Email | None:
        """Return the stored email or ``None``."""
        raise NotImplementedError

    def update_category(self, email_id: str, category: Category) -> None:
        """Overwrite the category of a stored email."""
        raise NotImplementedError


class Notifier(Protocol):
    """Best-effort outbound alerts for interesting mail."""

    def send_chat_alert(self, email: Email) -> None:
        """Post a chat message describing ``email``."""
        raise NotImplementedError

    def send_webhook(self, email: Email) -> None:
        """Deliver a JSON event describing ``email``."""
        raise NotImplementedError


class Categorizer(Protocol):
    """Assigns a :class:`Category` to an email. Must not raise."""

    def categorize(self, email: Email) -> Category:
        """Return the category for ``email``."""
        raise NotImplementedError


__all__ = [
    "AccountNotFoundError",
    "Categorizer",
    "EmailStore",
    "MailTransport",
    "MessageParseError",
    "NotificationError",
    "Notifier",
    "StoreError",
    "TransportError",
    "TransportFactory",
    "TransportListener",
]
