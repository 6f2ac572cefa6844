"""Tests for the SQLite and in-memory email stores."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from onebox.core.config import StorageSettings
from onebox.core.interfaces import StoreError
from onebox.core.models import Category, Email, SearchFilter
from onebox.storage import InMemoryEmailStore, SqliteEmailStore

BASE_DATE = datetime(2025, 10, 1, 12, 0, tzinfo=UTC)


def _email(index: int, **changes) -> Email:
    email = Email(
        id=f"email-{index}",
        account_id="account1",
        message_id=f"<{index}@example.com>",
        sender=f"sender{index}@example.com",
        to=("me@example.com",),
        subject=f"Subject {index}",
        body=f"Body {index}",
        date=BASE_DATE + timedelta(hours=index),
        folder="INBOX",
        category=Category.UNCATEGORIZED,
        attachments=("file.txt",) if index == 1 else (),
    )
    return replace(email, **changes)


@pytest.fixture(params=["sqlite", "memory"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        yield InMemoryEmailStore()
        return
    sqlite_store = SqliteEmailStore(StorageSettings(db_path=tmp_path / "emails.db"))
    yield sqlite_store
    sqlite_store.close()


def test_upsert_and_get_round_trip(store) -> None:
    email = _email(1, category=Category.INTERESTED)

    store.upsert(email.id, email)
    loaded = store.get(email.id)

    assert loaded == email
    assert store.get("missing") is None


def test_upsert_same_id_replaces_record(store) -> None:
    store.upsert("email-1", _email(1))
    store.upsert("email-1", _email(1, subject="Updated", category=Category.SPAM))

    results = store.query(SearchFilter())

    assert len(results) == 1
    assert results[0].subject == "Updated"
    assert results[0].category is Category.SPAM


def test_query_orders_newest_first_with_paging(store) -> None:
    for index in range(5):
        email = _email(index)
        store.upsert(email.id, email)

    first_page = store.query(SearchFilter(limit=2))
    second_page = store.query(SearchFilter(offset=2, limit=2))

    assert [email.id for email in first_page] == ["email-4", "email-3"]
    assert [email.id for email in second_page] == ["email-2", "email-1"]


def test_query_filters(store) -> None:
    store.upsert("email-1", _email(1, body="Let's schedule an interview"))
    store.upsert("email-2", _email(2, account_id="account2"))
    store.upsert("email-3", _email(3, folder="Archive", category=Category.SPAM))

    assert [e.id for e in store.query(SearchFilter(text="INTERVIEW"))] == ["email-1"]
    assert [e.id for e in store.query(SearchFilter(text="sender2"))] == ["email-2"]
    assert [e.id for e in store.query(SearchFilter(account_id="account2"))] == [
        "email-2"
    ]
    assert [e.id for e in store.query(SearchFilter(folder="Archive"))] == ["email-3"]
    assert [e.id for e in store.query(SearchFilter(category=Category.SPAM))] == [
        "email-3"
    ]


def test_text_search_treats_wildcards_literally(store) -> None:
    store.upsert("email-1", _email(1, body="Discount of 50% today"))
    store.upsert("email-2", _email(2, body="Discount of 500 today"))
    store.upsert("email-3", _email(3, subject="file_name.txt"))
    store.upsert("email-4", _email(4, subject="fileXname.txt"))

    assert [e.id for e in store.query(SearchFilter(text="50%"))] == ["email-1"]
    assert [e.id for e in store.query(SearchFilter(text="file_name"))] == ["email-3"]
    assert store.query(SearchFilter(text="%")) == [store.get("email-1")]


def test_update_category(store) -> None:
    store.upsert("email-1", _email(1))

    store.update_category("email-1", Category.MEETING_BOOKED)

    assert store.get("email-1").category is Category.MEETING_BOOKED
    with pytest.raises(StoreError):
        store.update_category("missing", Category.SPAM)


def test_sqlite_store_persists_between_connections(tmp_path: Path) -> None:
    settings = StorageSettings(db_path=tmp_path / "nested" / "emails.db")
    with SqliteEmailStore(settings) as first:
        first.upsert("email-1", _email(1))

    with SqliteEmailStore(settings) as second:
        assert second.count() == 1
        assert second.get("email-1") == _email(1)
