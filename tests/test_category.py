"""Tests for the pattern and remote-model categorisers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from onebox.core.config import LlmSettings
from onebox.core.models import Category, Email
from onebox.intelligence import (
    LLMError,
    PatternCategorizer,
    RemoteModelCategorizer,
    build_categorizer,
    keyword_fallback,
)


def _email(subject: str, body: str) -> Email:
    return Email(
        id="email-1",
        account_id="account1",
        message_id="<1@example.com>",
        sender="sender@example.com",
        to=("me@example.com",),
        subject=subject,
        body=body,
        date=datetime(2025, 10, 1, tzinfo=UTC),
        folder="INBOX",
    )


class StubLLM:
    """LLM stub returning a canned response or raising."""

    def __init__(self, response: str | None = None, error: Exception | None = None):
        self._response = response
        self._error = error
        self.prompts: list[str] = []

    @property
    def provider_id(self) -> str:
        return "stub"

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def test_no_pattern_match_is_uncategorized() -> None:
    email = _email("Quarterly report", "Please find the figures attached.")

    assert PatternCategorizer().categorize(email) is Category.UNCATEGORIZED


def test_out_of_office_wins_tie_with_interested() -> None:
    email = _email("Auto note", "I am out of office but interested")
    categorizer = PatternCategorizer()

    scores = categorizer.scores(email)

    assert scores[Category.OUT_OF_OFFICE] == 1
    assert scores[Category.INTERESTED] == 1
    assert categorizer.categorize(email) is Category.OUT_OF_OFFICE


def test_strict_maximum_beats_tie_break_order() -> None:
    email = _email(
        "Re: proposal",
        "Back from being out of office. I'm interested and would like to discuss.",
    )

    assert PatternCategorizer().categorize(email) is Category.INTERESTED


@pytest.mark.parametrize(
    ("subject", "body", "expected"),
    [
        (
            "AMAZING OFFER - 50% OFF TODAY ONLY!!!",
            "Click here now to claim your exclusive discount! Buy now!",
            Category.SPAM,
        ),
        (
            "Meeting Confirmation: Technical Interview",
            "Your interview has been confirmed for Friday at 10:00 AM.",
            Category.MEETING_BOOKED,
        ),
        (
            "Re: our platform",
            "No thank you, we already have a vendor for this.",
            Category.NOT_INTERESTED,
        ),
        (
            "Out of Office: Re: Project Discussion",
            "I am on vacation and will return on Monday.",
            Category.OUT_OF_OFFICE,
        ),
    ],
)
def test_pattern_categories(subject: str, body: str, expected: Category) -> None:
    assert PatternCategorizer().categorize(_email(subject, body)) is expected


def test_remote_label_maps_to_category() -> None:
    llm = StubLLM(" Meeting Booked\n")
    email = _email("Call", "x" * 800)

    assert RemoteModelCategorizer(llm).categorize(email) is Category.MEETING_BOOKED
    prompt = llm.prompts[0]
    assert "Email Subject: Call" in prompt
    assert "x" * 500 in prompt
    assert "x" * 501 not in prompt
    assert prompt.endswith("Respond with only the category name.")


def test_remote_unknown_label_is_uncategorized() -> None:
    llm = StubLLM("Probably interested")

    category = RemoteModelCategorizer(llm).categorize(_email("Hi", "Hello"))

    assert category is Category.UNCATEGORIZED


def test_remote_failure_uses_keyword_fallback() -> None:
    llm = StubLLM(error=LLMError("boom"))
    email = _email("Hello", "We would like to discuss the role.")

    assert RemoteModelCategorizer(llm).categorize(email) is Category.INTERESTED


def test_keyword_fallback_checks_declines_before_interest() -> None:
    assert keyword_fallback(_email("Re", "We are not interested.")) is (
        Category.NOT_INTERESTED
    )
    assert keyword_fallback(_email("Re", "Nothing relevant.")) is (
        Category.UNCATEGORIZED
    )


def test_build_categorizer_selects_engine_by_credential() -> None:
    assert isinstance(build_categorizer(LlmSettings()), PatternCategorizer)
    remote = build_categorizer(LlmSettings(api_key="key"), llm_client=StubLLM("Spam"))
    assert isinstance(remote, RemoteModelCategorizer)
