"""Per-message processing: normalize, categorize, route."""

from __future__ import annotations

import logging
from typing import Protocol

from ..core.interfaces import Categorizer, MessageParseError
from ..core.models import Category, Email, EmailAccount, RawMessage
from .router import SideEffectRouter

LOGGER = logging.getLogger(__name__)


class NormalizerProtocol(Protocol):
    """Minimal protocol implemented by message normalizers."""

    def normalize(self, payload: bytes, account: EmailAccount) -> Email:
        """Convert a raw RFC822 payload into an :class:`Email`."""
        raise NotImplementedError


class MessagePipeline:
    """Run one raw message through normalization, categorization and routing."""

    def __init__(
        self,
        normalizer: NormalizerProtocol,
        categorizer: Categorizer,
        router: SideEffectRouter,
    ) -> None:
        self._normalizer = normalizer
        self._categorizer = categorizer
        self._router = router

    def process(self, message: RawMessage, account: EmailAccount) -> Email | None:
        """Return the routed email, or ``None`` when the message was skipped."""
        try:
            email = self._normalizer.normalize(message.payload, account)
        except MessageParseError as exc:
            LOGGER.warning(
                "Skipping UID %s for account %s: %s", message.uid, account.id, exc
            )
            return None

        try:
            email.category = self._categorizer.categorize(email)
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Categorizer raised for email %s", email.id)
            email.category = Category.UNCATEGORIZED

        self._router.route(email)
        LOGGER.debug(
            "Processed UID %s for account %s as %s",
            message.uid,
            account.id,
            email.category.value,
        )
        return email


__all__ = ["MessagePipeline", "NormalizerProtocol"]
