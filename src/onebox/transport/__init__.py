"""Transport adapters for mailbox access and outbound notifications."""

from .imap_client import ImapTransport
from .notifier import WebhookNotifier

__all__ = ["ImapTransport", "WebhookNotifier"]
