"""Side effects fired for every categorized email."""

from __future__ import annotations

import logging

from ..core.interfaces import EmailStore, Notifier
from ..core.models import Category, Email

LOGGER = logging.getLogger(__name__)


class SideEffectRouter:
    """Persist each email and alert on interested replies."""

    def __init__(self, store: EmailStore, notifier: Notifier) -> None:
        self._store = store
        self._notifier = notifier

    def route(self, email: Email) -> None:
        """Upsert ``email`` and, when Interested, notify on both channels.

        Every step is attempted independently; failures are logged and
        never retried here.
        """
        try:
            self._store.upsert(email.id, email)
            LOGGER.debug("Stored email %s for account %s", email.id, email.account_id)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Failed to store email %s (%s): %s",
                email.id,
                email.message_id,
                exc,
            )

        if email.category is not Category.INTERESTED:
            return

        try:
            self._notifier.send_chat_alert(email)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Chat alert failed for email %s: %s", email.id, exc)

        try:
            self._notifier.send_webhook(email)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Webhook failed for email %s: %s", email.id, exc)


__all__ = ["SideEffectRouter"]
