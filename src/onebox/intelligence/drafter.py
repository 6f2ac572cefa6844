"""Reply suggestions for stored emails."""

from __future__ import annotations

import logging
import random

from onebox.core.config import ReplySettings
from onebox.core.datetime_utils import utc_now
from onebox.core.interfaces import Categorizer
from onebox.core.models import Category, Email, ReplySuggestion

from .llm import LLMClient, LLMError
from .prompts import build_reply_prompt

LOGGER = logging.getLogger(__name__)

_TEMPLATES: dict[Category, tuple[str, ...]] = {
    Category.INTERESTED: (
        "Thank you for your interest in my profile! I'm excited about the "
        "opportunity to discuss this further.\n\nI'm available for a conversation "
        "at your convenience. You can book a time that works for you here: "
        "{meeting_link}\n\nLooking forward to connecting!",
        "I appreciate you reaching out! I'm definitely interested in learning more "
        "about this opportunity.\n\nWould you like to schedule a call? You can pick "
        "a time here: {meeting_link}\n\nBest regards,",
        "Thanks for considering my profile! I'd love to discuss this opportunity in "
        "more detail.\n\nPlease feel free to book a meeting slot here: "
        "{meeting_link}\n\nI look forward to our conversation!",
    ),
    Category.MEETING_BOOKED: (
        "Thank you for confirming! I've added it to my calendar and I'm looking "
        "forward to our meeting.\n\nSee you then!",
        "Perfect! I've noted the meeting details and will be there.\n\nLooking "
        "forward to our discussion!",
        "Great! The meeting is confirmed on my end. I'm excited to connect.\n\nSee "
        "you soon!",
    ),
    Category.NOT_INTERESTED: (
        "Thank you for letting me know. I appreciate you taking the time to "
        "respond.\n\nBest wishes!",
        "I understand. Thank you for considering my profile.\n\nAll the best!",
    ),
    Category.OUT_OF_OFFICE: (
        "Thank you for your auto-reply. I'll follow up when you're back.\n\nEnjoy "
        "your time away!",
    ),
    Category.UNCATEGORIZED: (
        'Thank you for your email regarding "{subject}".\n\nI appreciate you '
        "reaching out. If you'd like to discuss this further, you can schedule a "
        "time here: {meeting_link}\n\nBest regards,",
    ),
}

_FALLBACK_CONFIDENCE = 0.5
_MODEL_CONFIDENCE = 0.85


class ReplySuggester:
    """Generate reply suggestions using an LLM with template fallback."""

    def __init__(
        self,
        llm_client: LLMClient | None,
        categorizer: Categorizer,
        settings: ReplySettings,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._llm_client = llm_client
        self._categorizer = categorizer
        self._settings = settings
        self._rng = rng or random.Random()

    def suggest(self, email: Email) -> ReplySuggestion:
        """Return a suggested reply body for ``email``."""
        if self._llm_client is not None:
            prompt = build_reply_prompt(email, context=self._settings.context)
            try:
                body = self._llm_client.generate(prompt).strip()
            except LLMError as exc:
                LOGGER.warning("LLM reply failed for email %s: %s", email.id, exc)
                body = ""
            if body:
                return ReplySuggestion(
                    email_id=email.id,
                    body=body,
                    confidence=_MODEL_CONFIDENCE,
                    provider=self._llm_client.provider_id,
                    generated_at=utc_now(),
                    used_fallback=False,
                )

        category = email.category or self._categorizer.categorize(email)
        templates = _TEMPLATES.get(category, _TEMPLATES[Category.UNCATEGORIZED])
        body = self._rng.choice(templates).format(
            meeting_link=self._settings.meeting_link,
            subject=email.subject or "your message",
        )
        return ReplySuggestion(
            email_id=email.id,
            body=body,
            confidence=_FALLBACK_CONFIDENCE,
            provider="templates",
            generated_at=utc_now(),
            used_fallback=True,
        )


__all__ = ["ReplySuggester"]
