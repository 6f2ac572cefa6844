"""Integration tests for the FastAPI web application."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from onebox.core.config import AppSettings, StorageSettings
from onebox.core.container import COORDINATOR, STORE, build_services
from onebox.core.interfaces import StoreError
from onebox.core.models import Category, Email, EmailAccount, SessionState
from onebox.ingestion import SyncCoordinator
from onebox.storage import InMemoryEmailStore
from onebox.web import create_app


def _email(index: int, category: Category) -> Email:
    return Email(
        id=f"email-{index}",
        account_id="account1",
        message_id=f"<{index}@example.com>",
        sender="lead@example.com",
        to=("me@example.com",),
        subject=f"Proposal {index}",
        body="We would like to discuss next steps.",
        date=datetime(2025, 10, index, tzinfo=UTC),
        folder="INBOX",
        category=category,
    )


class FakeSession:
    def __init__(self, account: EmailAccount) -> None:
        self.account = account
        self.state = SessionState.DISCONNECTED

    def start(self) -> None:
        self.state = SessionState.CONNECTING

    def stop(self) -> None:
        self.state = SessionState.DISCONNECTED


class BrokenStore(InMemoryEmailStore):
    def query(self, search):
        raise StoreError("database unavailable")


def _client(tmp_path: Path, store: InMemoryEmailStore) -> TestClient:
    settings = AppSettings(storage=StorageSettings(db_path=tmp_path / "web.db"))
    services = build_services(settings)
    services.provide(STORE, store)
    account = EmailAccount(
        id="account1", user="me@example.com", password="pw", host="h", port=993
    )
    services.provide(COORDINATOR, SyncCoordinator(lambda: [account], FakeSession))
    app = create_app(settings, services=services, start_sync=False)
    return TestClient(app)


@pytest.fixture
def store() -> InMemoryEmailStore:
    return InMemoryEmailStore(
        [_email(1, Category.SPAM), _email(2, Category.INTERESTED)]
    )


def test_health(tmp_path: Path, store: InMemoryEmailStore) -> None:
    response = _client(tmp_path, store).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_and_search_emails(tmp_path: Path, store: InMemoryEmailStore) -> None:
    client = _client(tmp_path, store)

    listing = client.get("/api/emails").json()
    assert listing["success"] is True
    assert listing["demo"] is False
    assert [email["id"] for email in listing["emails"]] == ["email-2", "email-1"]
    assert listing["emails"][0]["from"] == "lead@example.com"
    assert listing["emails"][0]["category"] == "Interested"

    search = client.get(
        "/api/emails/search", params={"q": "proposal", "category": "Spam"}
    ).json()
    assert search["count"] == 1
    assert search["emails"][0]["id"] == "email-1"

    bad = client.get("/api/emails/search", params={"category": "Maybe"})
    assert bad.status_code == 400
    assert bad.json()["success"] is False


def test_empty_store_falls_back_to_samples(tmp_path: Path) -> None:
    client = _client(tmp_path, InMemoryEmailStore())

    listing = client.get("/api/emails").json()
    assert listing["demo"] is True
    assert listing["count"] == 8

    search = client.get(
        "/api/emails/search", params={"category": "Out of Office"}
    ).json()
    assert search["demo"] is True
    assert search["count"] == 1

    detail = client.get("/api/emails/demo-0")
    assert detail.status_code == 200
    assert detail.json()["email"]["from"] == "recruiter@techcorp.com"


def test_get_and_update_category(tmp_path: Path, store: InMemoryEmailStore) -> None:
    client = _client(tmp_path, store)

    assert client.get("/api/emails/email-1").json()["email"]["subject"] == "Proposal 1"
    assert client.get("/api/emails/nope").status_code == 404

    response = client.patch(
        "/api/emails/email-1/category", json={"category": "Meeting Booked"}
    )
    assert response.status_code == 200
    assert store.get("email-1").category is Category.MEETING_BOOKED

    assert client.patch("/api/emails/email-1/category", json={}).status_code == 400
    missing = client.patch(
        "/api/emails/nope/category", json={"category": "Spam"}
    )
    assert missing.status_code == 404


def test_sync_account_endpoint(tmp_path: Path, store: InMemoryEmailStore) -> None:
    client = _client(tmp_path, store)

    ok = client.post("/api/emails/sync/account1")
    assert ok.status_code == 200
    assert ok.json() == {"success": True, "message": "Sync started"}

    missing = client.post("/api/emails/sync/account9")
    assert missing.status_code == 404
    assert missing.json() == {
        "success": False,
        "error": "Account not found: account9",
    }


def test_suggest_reply_uses_templates_without_model(
    tmp_path: Path, store: InMemoryEmailStore
) -> None:
    client = _client(tmp_path, store)

    response = client.post("/api/emails/email-2/suggest-reply")

    assert response.status_code == 200
    suggestion = response.json()["suggestion"]
    assert suggestion["emailId"] == "email-2"
    assert suggestion["usedFallback"] is True
    assert client.post("/api/emails/nope/suggest-reply").status_code == 404


def test_store_failure_returns_error_envelope(tmp_path: Path) -> None:
    client = _client(tmp_path, BrokenStore())

    response = client.get("/api/emails")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "database unavailable"}
