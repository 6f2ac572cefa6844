"""Prompt templates for LLM-driven categorisation and replies."""

from __future__ import annotations

from textwrap import dedent

from onebox.core.models import Email

CATEGORY_BODY_LIMIT = 500

_CATEGORY_INSTRUCTIONS = dedent(
    """
    Categorize the following email into one of these categories:
    - Interested: The sender shows interest in the proposal/product/service
    - Meeting Booked: The email confirms or schedules a meeting
    - Not Interested: The sender declines or shows no interest
    - Spam: Promotional, unsolicited, or irrelevant content
    - Out of Office: Automated out-of-office reply
    """
).strip()

_REPLY_INSTRUCTIONS = (
    "Generate a professional and contextually appropriate reply based on the "
    "context provided. Return only the reply text."
)


def build_category_prompt(email: Email) -> str:
    """Compose a prompt asking for exactly one category label."""
    lines = [
        _CATEGORY_INSTRUCTIONS,
        "",
        f"Email Subject: {email.subject}",
        f"Email Body: {email.body[:CATEGORY_BODY_LIMIT]}",
        "",
        "Respond with only the category name.",
    ]
    return "\n".join(lines)


def build_reply_prompt(email: Email, *, context: str) -> str:
    """Compose a prompt instructing the LLM to draft a reply."""
    lines = [
        f"Context: {context}",
        "",
        "I received this email:",
        f"From: {email.sender or '(unknown sender)'}",
        f"Subject: {email.subject or '(no subject)'}",
        f"Body: {email.body}",
        "",
        _REPLY_INSTRUCTIONS,
    ]
    return "\n".join(lines)


__all__ = ["CATEGORY_BODY_LIMIT", "build_category_prompt", "build_reply_prompt"]
