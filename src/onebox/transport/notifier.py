"""Slack and generic webhook notifications for interesting mail."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.config import NotificationSettings
from ..core.datetime_utils import serialize_datetime, utc_now
from ..core.interfaces import NotificationError, Notifier
from ..core.models import Email

LOGGER = logging.getLogger(__name__)

PREVIEW_LENGTH = 200
INTERESTED_EVENT = "email.interested"


class WebhookNotifier(Notifier):
    """Deliver notifications over HTTP; unconfigured channels are skipped."""

    def __init__(
        self,
        settings: NotificationSettings,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client or httpx.Client(timeout=settings.timeout_seconds)

    def send_chat_alert(self, email: Email) -> None:
        """Post a Slack message with sender, subject, and a body preview."""
        url = self._settings.slack_webhook_url
        if not url:
            LOGGER.info("Slack webhook not configured; skipping alert for %s", email.id)
            return
        self._post(url, build_slack_message(email), channel="slack")
        LOGGER.info("Slack notification sent for email %s", email.id)

    def send_webhook(self, email: Email) -> None:
        """Post an ``email.interested`` event to the generic webhook."""
        url = self._settings.webhook_url
        if not url:
            LOGGER.info("Webhook URL not configured; skipping event for %s", email.id)
            return
        self._post(url, build_webhook_event(email), channel="webhook")
        LOGGER.info("Webhook triggered for email %s", email.id)

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._http.close()

    def _post(self, url: str, payload: dict[str, Any], *, channel: str) -> None:
        try:
            response = self._http.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"{channel} delivery failed: {exc}") from exc


def build_slack_message(email: Email) -> dict[str, Any]:
    """Return the Slack block payload announcing an interested reply."""
    return {
        "text": "New Interested Email!",
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "New Interested Email"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*From:*\n{email.sender}"},
                    {"type": "mrkdwn", "text": f"*Subject:*\n{email.subject}"},
                ],
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Preview:*\n{email.body[:PREVIEW_LENGTH]}...",
                },
            },
        ],
    }


def build_webhook_event(email: Email) -> dict[str, Any]:
    """Return the JSON event posted to the generic webhook."""
    return {
        "event": INTERESTED_EVENT,
        "email": {
            "id": email.id,
            "accountId": email.account_id,
            "from": email.sender,
            "subject": email.subject,
            "date": serialize_datetime(email.date),
            "category": email.category.value if email.category else None,
        },
        "timestamp": serialize_datetime(utc_now()),
    }


__all__ = ["WebhookNotifier", "build_slack_message", "build_webhook_event"]
