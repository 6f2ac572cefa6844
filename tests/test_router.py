"""Tests for the side-effect router and message pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

from onebox.core.interfaces import MessageParseError, StoreError
from onebox.core.models import Category, Email, EmailAccount, RawMessage, SearchFilter
from onebox.ingestion import MessagePipeline, SideEffectRouter
from onebox.storage import InMemoryEmailStore

ACCOUNT = EmailAccount(
    id="account1", user="me@example.com", password="pw", host="imap.test", port=993
)


def _email(category: Category | None, email_id: str = "email-1") -> Email:
    return Email(
        id=email_id,
        account_id="account1",
        message_id="<1@example.com>",
        sender="lead@example.com",
        to=("me@example.com",),
        subject="Re: proposal",
        body="Sounds good",
        date=datetime(2025, 10, 1, tzinfo=UTC),
        folder="INBOX",
        category=category,
    )


class RecordingNotifier:
    """Notifier capturing calls, optionally failing one channel."""

    def __init__(self, *, fail_chat: bool = False) -> None:
        self.chat: list[str] = []
        self.webhooks: list[str] = []
        self._fail_chat = fail_chat

    def send_chat_alert(self, email: Email) -> None:
        if self._fail_chat:
            raise RuntimeError("slack down")
        self.chat.append(email.id)

    def send_webhook(self, email: Email) -> None:
        self.webhooks.append(email.id)


class FailingStore(InMemoryEmailStore):
    def upsert(self, email_id: str, email: Email) -> None:
        raise StoreError("disk full")


def test_routing_twice_leaves_one_record() -> None:
    store = InMemoryEmailStore()
    router = SideEffectRouter(store, RecordingNotifier())
    email = _email(Category.SPAM)

    router.route(email)
    router.route(email)

    assert len(store) == 1
    assert store.get("email-1").category is Category.SPAM


def test_interested_email_notifies_both_channels_once() -> None:
    notifier = RecordingNotifier()
    router = SideEffectRouter(InMemoryEmailStore(), notifier)

    router.route(_email(Category.INTERESTED))

    assert notifier.chat == ["email-1"]
    assert notifier.webhooks == ["email-1"]


def test_other_categories_do_not_notify() -> None:
    notifier = RecordingNotifier()
    router = SideEffectRouter(InMemoryEmailStore(), notifier)

    for index, category in enumerate(Category):
        if category is not Category.INTERESTED:
            router.route(_email(category, email_id=f"email-{index}"))

    assert notifier.chat == []
    assert notifier.webhooks == []


def test_failures_are_isolated_per_step() -> None:
    notifier = RecordingNotifier(fail_chat=True)
    router = SideEffectRouter(FailingStore(), notifier)

    router.route(_email(Category.INTERESTED))

    assert notifier.webhooks == ["email-1"]


class StubNormalizer:
    def normalize(self, payload: bytes, account: EmailAccount) -> Email:
        if payload == b"broken":
            raise MessageParseError("broken")
        return _email(None, email_id=payload.decode())


class ExplodingCategorizer:
    def categorize(self, email: Email) -> Category:
        raise RuntimeError("model exploded")


def test_pipeline_skips_parse_failures_and_survives_categorizer_errors() -> None:
    store = InMemoryEmailStore()
    pipeline = MessagePipeline(
        StubNormalizer(),
        ExplodingCategorizer(),
        SideEffectRouter(store, RecordingNotifier()),
    )

    assert pipeline.process(RawMessage(uid=1, payload=b"broken"), ACCOUNT) is None
    email = pipeline.process(RawMessage(uid=2, payload=b"email-2"), ACCOUNT)

    assert email is not None
    assert email.category is Category.UNCATEGORIZED
    assert [e.id for e in store.query(SearchFilter())] == ["email-2"]
