"""Utilities for parsing raw RFC822 messages into normalized emails."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from email import errors, policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime

from ..core.datetime_utils import ensure_utc, utc_now
from ..core.interfaces import MessageParseError
from ..core.models import Email, EmailAccount

# Namespace for ids derived from (account id, Message-ID).
_EMAIL_ID_NAMESPACE = uuid.UUID("6f1d3c0e-8a52-4c1e-9f1a-3b2f8e7d5a90")


class EmailNormalizer:
    """Convert raw email payloads into :class:`Email` records."""

    def __init__(self, folder: str = "INBOX") -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)
        self._folder = folder

    def normalize(self, payload: bytes, account: EmailAccount) -> Email:
        """Parse raw RFC822 bytes into an :class:`Email` owned by ``account``."""
        if not isinstance(payload, (bytes, bytearray)) or not payload.strip():
            raise MessageParseError("Empty or non-binary message payload")

        try:
            message = self._parser.parsebytes(bytes(payload))
            if not message.keys():
                raise MessageParseError("Message has no headers")
            sender = _header_text(message, "From")
            recipients = tuple(_extract_addresses(message.get_all("To", [])))
            subject = _header_text(message, "Subject")
            raw_message_id = _header_text(message, "Message-ID")
            body = _extract_body(message)
            attachments = tuple(_collect_attachment_names(message))
            sent_at = _try_parse_datetime(message.get("Date"))
        except MessageParseError:
            raise
        except (errors.MessageError, LookupError, TypeError, ValueError) as exc:
            raise MessageParseError(f"Malformed message: {exc}") from exc

        message_id = raw_message_id or str(uuid.uuid4())
        return Email(
            id=derive_email_id(account.id, message_id),
            account_id=account.id,
            message_id=message_id,
            sender=sender,
            to=recipients,
            subject=subject,
            body=body,
            date=sent_at or utc_now(),
            folder=self._folder,
            category=None,
            read=False,
            attachments=attachments,
        )


def derive_email_id(account_id: str, message_id: str) -> str:
    """Return the stable store id for a message of an account."""
    return str(uuid.uuid5(_EMAIL_ID_NAMESPACE, f"{account_id}\x00{message_id}"))


def _header_text(message: EmailMessage, name: str) -> str:
    value = message.get(name)
    if value is None:
        return ""
    return str(value).strip()


def _extract_addresses(headers: Iterable[str]) -> Iterable[str]:
    for _, email_address in getaddresses([str(header) for header in headers]):
        if email_address:
            yield email_address


def _extract_body(message: EmailMessage) -> str:
    plain_chunks: list[str] = []
    html_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        try:
            content_obj = part.get_content()
        except LookupError:
            continue
        if not isinstance(content_obj, str):
            continue
        content = content_obj.strip()
        if not content:
            continue
        if content_type == "text/plain":
            plain_chunks.append(content)
        else:
            html_chunks.append(content)

    if plain_chunks:
        return "\n\n".join(plain_chunks)
    return "\n".join(html_chunks)


def _collect_attachment_names(message: EmailMessage) -> Iterable[str]:
    for part in message.iter_attachments():
        yield part.get_filename() or ""


def _try_parse_datetime(header_value: str | None) -> datetime | None:
    if header_value is None:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(str(header_value)))
    except (TypeError, ValueError):
        return None


__all__ = ["EmailNormalizer", "derive_email_id"]
