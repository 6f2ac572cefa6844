"""Categorisation engines: pattern scoring and remote model with fallback."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from onebox.core.config import LlmSettings
from onebox.core.interfaces import Categorizer
from onebox.core.models import Category, Email

from .llm import ChatCompletionClient, LLMClient
from .prompts import build_category_prompt

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PatternSet:
    category: Category
    patterns: tuple[re.Pattern[str], ...]


def _compile(*expressions: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(expression, re.IGNORECASE) for expression in expressions)


# Listed in tie-break priority order: the first set whose score equals the
# maximum wins.
DEFAULT_PATTERN_SETS: tuple[_PatternSet, ...] = (
    _PatternSet(
        category=Category.OUT_OF_OFFICE,
        patterns=_compile(
            r"\b(out of office|away from office|on vacation)\b",
            r"\b(automatic reply|auto-reply|automated response)\b",
            r"\b(will return|back on|returning on)\b",
            r"\b(limited access to email|not checking email)\b",
        ),
    ),
    _PatternSet(
        category=Category.SPAM,
        patterns=_compile(
            r"\b(buy now|click here|limited time|act now)\b",
            r"\b(congratulations|you've won|claim your|free gift)\b",
            r"\b(discount|sale|offer|deal)\b.*\b(today|now|limited)\b",
            r"\b(viagra|casino|lottery|prize)\b",
            r"\$\$\$|!!!",
        ),
    ),
    _PatternSet(
        category=Category.MEETING_BOOKED,
        patterns=_compile(
            r"\b(meeting|call|interview)\b.*\b(scheduled|confirmed|booked)\b",
            r"\b(confirmed|booked)\b.*\b(meeting|call|interview)\b",
            r"\b(calendar invite|meeting invite|zoom link)\b",
            r"\b(see you|talk to you)\b.*"
            r"\b(tomorrow|monday|tuesday|wednesday|thursday|friday)\b",
        ),
    ),
    _PatternSet(
        category=Category.NOT_INTERESTED,
        patterns=_compile(
            r"\b(not interested|no longer interested|pass|decline)\b",
            r"\b(no thank you|not at this time|not right now)\b",
            r"\b(already have|already using|satisfied with)\b",
            r"\b(unsubscribe|remove me|stop sending)\b",
        ),
    ),
    _PatternSet(
        category=Category.INTERESTED,
        patterns=_compile(
            r"\b(interested|would like|keen|excited|looking forward)\b",
            r"\b(discuss|explore|learn more|tell me more)\b",
            r"\b(sounds good|sounds great|sounds interesting)\b",
            r"\b(yes|sure|absolutely|definitely)\b.*\b(interested|discuss)\b",
        ),
    ),
)

# Last-resort substring checks, evaluated in order. "not interested" contains
# "interested", so declines are checked before interest.
_FALLBACK_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.NOT_INTERESTED, ("not interested", "no longer", "decline")),
    (Category.INTERESTED, ("interested", "would like to", "discuss")),
    (Category.MEETING_BOOKED, ("meeting", "scheduled", "confirmed")),
    (Category.OUT_OF_OFFICE, ("out of office", "away", "vacation")),
    (Category.SPAM, ("buy now", "limited time", "click here")),
)


def _build_haystack(email: Email) -> str:
    return f"{email.subject} {email.body}".lower()


def keyword_fallback(email: Email) -> Category:
    """Return a category from single-keyword substring checks."""
    haystack = _build_haystack(email)
    for category, keywords in _FALLBACK_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return category
    return Category.UNCATEGORIZED


class PatternCategorizer(Categorizer):
    """Score text against weighted pattern sets; no external dependency."""

    def __init__(self, pattern_sets: Sequence[_PatternSet] | None = None) -> None:
        self._pattern_sets: tuple[_PatternSet, ...] = (
            tuple(pattern_sets) if pattern_sets is not None else DEFAULT_PATTERN_SETS
        )

    @property
    def provider_id(self) -> str:
        return "patterns"

    def scores(self, email: Email) -> dict[Category, int]:
        """Return the number of matching patterns per category."""
        haystack = _build_haystack(email)
        return {
            pattern_set.category: sum(
                1 for pattern in pattern_set.patterns if pattern.search(haystack)
            )
            for pattern_set in self._pattern_sets
        }

    def categorize(self, email: Email) -> Category:
        """Return the highest scoring category, or Uncategorized when none match."""
        try:
            scores = self.scores(email)
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Pattern scoring failed for email %s", email.id)
            return keyword_fallback(email)

        best = max(scores.values(), default=0)
        if best == 0:
            return Category.UNCATEGORIZED
        for pattern_set in self._pattern_sets:
            if scores[pattern_set.category] == best:
                return pattern_set.category
        return Category.UNCATEGORIZED


class RemoteModelCategorizer(Categorizer):
    """Ask a remote model for the label; degrade to keyword checks on any fault."""

    def __init__(self, llm_client: LLMClient) -> None:
        self._llm_client = llm_client

    @property
    def provider_id(self) -> str:
        return self._llm_client.provider_id

    def categorize(self, email: Email) -> Category:
        """Return the model's label mapped onto :class:`Category`."""
        try:
            response = self._llm_client.generate(build_category_prompt(email))
            label = response.strip()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Remote categorisation failed for email %s: %s; using keyword fallback",
                email.id,
                exc,
            )
            return keyword_fallback(email)

        category = Category.from_label(label)
        if category is None:
            LOGGER.debug("Unrecognised category label %r for email %s", label, email.id)
            return Category.UNCATEGORIZED
        return category


def build_categorizer(
    settings: LlmSettings, *, llm_client: LLMClient | None = None
) -> PatternCategorizer | RemoteModelCategorizer:
    """Select the engine once, based on whether a model credential is configured."""
    if llm_client is None and settings.api_key:
        llm_client = ChatCompletionClient(settings)
    if llm_client is None:
        LOGGER.info("Using pattern categoriser (no model credential configured)")
        return PatternCategorizer()
    LOGGER.info("Using remote categoriser %s", llm_client.provider_id)
    return RemoteModelCategorizer(llm_client)


__all__ = [
    "DEFAULT_PATTERN_SETS",
    "PatternCategorizer",
    "RemoteModelCategorizer",
    "build_categorizer",
    "keyword_fallback",
]
