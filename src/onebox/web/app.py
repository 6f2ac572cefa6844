"""FastAPI application exposing the synchronised mailbox."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core import AppSettings, load_app_settings
from ..core.container import (
    COORDINATOR,
    REPLY_SUGGESTER,
    STORE,
    ServiceContainer,
    build_services,
)
from ..core.datetime_utils import serialize_datetime
from ..core.interfaces import AccountNotFoundError, EmailStore
from ..core.models import Category, Email, ReplySuggestion, SearchFilter
from .samples import is_sample_id, sample_store

DEFAULT_LIMIT = 50
LIST_LIMIT = 100
MAX_LIMIT = 500

_DEFAULT_ENV_FILE = Path(".env")
_ENV_FILE_OVERRIDE_VAR = "ONEBOX_ENV_FILE"

LOGGER = logging.getLogger(__name__)


class CategoryUpdate(BaseModel):
    """Body of a category correction request."""

    category: str | None = None


def create_app(
    settings: AppSettings | None = None,
    *,
    services: ServiceContainer | None = None,
    start_sync: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Services are resolved lazily from ``services`` (built from ``settings``
    when omitted). With ``start_sync`` the coordinator starts every account
    session on application startup and stops them on shutdown.
    """
    app_settings = settings or load_app_settings(env_file=_resolve_env_file())
    container = services or build_services(app_settings)
    samples = sample_store()
    app = FastAPI(title="Onebox API")

    def store() -> EmailStore:
        return container.resolve(STORE)

    @app.on_event("startup")
    def startup_event() -> None:
        if start_sync:
            started = container.resolve(COORDINATOR).start()
            LOGGER.info("IMAP sync started for %s account(s)", started)

    @app.on_event("shutdown")
    def shutdown_event() -> None:
        container.close()
        LOGGER.info("Services closed")

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        request: Request, exc: RuntimeError
    ) -> JSONResponse:
        LOGGER.error("Request %s %s failed: %s", request.method, request.url, exc)
        return _error(500, str(exc))

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "message": "Onebox API is running"}

    @app.get("/api/emails")
    def list_emails(
        limit: int = Query(LIST_LIMIT, ge=1, le=MAX_LIMIT),  # noqa: B008
    ) -> dict[str, Any]:
        """Return the newest emails, or the sample mailbox when empty."""
        search = SearchFilter(limit=limit)
        return _listing(store(), samples, search)

    @app.get("/api/emails/search")
    def search_emails(
        q: str | None = None,
        account_id: str | None = Query(None, alias="accountId"),  # noqa: B008
        folder: str | None = None,
        category: str | None = None,
        offset: int = Query(0, ge=0, alias="from"),  # noqa: B008
        size: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),  # noqa: B008
    ) -> Any:
        """Full-text search with optional account, folder and category filters."""
        category_filter = None
        if category:
            category_filter = Category.from_label(category)
            if category_filter is None:
                return _error(400, f"Unknown category: {category}")
        search = SearchFilter(
            text=q or None,
            account_id=account_id or None,
            folder=folder or None,
            category=category_filter,
            offset=offset,
            limit=size,
        )
        return _listing(store(), samples, search)

    @app.get("/api/emails/{email_id}")
    def get_email(email_id: str) -> Any:
        email = _lookup(store(), samples, email_id)
        if email is None:
            return _error(404, "Email not found")
        return {"success": True, "email": serialize_email(email)}

    @app.patch("/api/emails/{email_id}/category")
    def update_category(email_id: str, update: CategoryUpdate) -> Any:
        """Correct the category of a stored email."""
        if not update.category:
            return _error(400, "Category is required")
        category = Category.from_label(update.category)
        if category is None:
            return _error(400, f"Unknown category: {update.category}")
        email_store = store()
        if email_store.get(email_id) is None:
            return _error(404, "Email not found")
        email_store.update_category(email_id, category)
        return {"success": True, "message": "Category updated"}

    @app.post("/api/emails/sync/{account_id}")
    def sync_account(account_id: str) -> Any:
        """Start a fresh session for one configured account."""
        try:
            container.resolve(COORDINATOR).sync_account(account_id)
        except AccountNotFoundError as exc:
            return _error(404, str(exc))
        return {"success": True, "message": "Sync started"}

    @app.post("/api/emails/{email_id}/suggest-reply")
    def suggest_reply(email_id: str) -> Any:
        email = _lookup(store(), samples, email_id)
        if email is None:
            return _error(404, "Email not found")
        suggestion = container.resolve(REPLY_SUGGESTER).suggest(email)
        return {"success": True, "suggestion": serialize_suggestion(suggestion)}

    return app


def serialize_email(email: Email) -> dict[str, Any]:
    return {
        "id": email.id,
        "accountId": email.account_id,
        "messageId": email.message_id,
        "from": email.sender,
        "to": list(email.to),
        "subject": email.subject,
        "body": email.body,
        "date": serialize_datetime(email.date),
        "folder": email.folder,
        "category": email.category.value if email.category else None,
        "read": email.read,
        "attachments": list(email.attachments),
    }


def serialize_suggestion(suggestion: ReplySuggestion) -> dict[str, Any]:
    return {
        "emailId": suggestion.email_id,
        "body": suggestion.body,
        "confidence": suggestion.confidence,
        "provider": suggestion.provider,
        "generatedAt": serialize_datetime(suggestion.generated_at),
        "usedFallback": suggestion.used_fallback,
    }


def _listing(
    email_store: EmailStore, samples: EmailStore, search: SearchFilter
) -> dict[str, Any]:
    emails = email_store.query(search)
    demo = False
    if not emails:
        emails = samples.query(search)
        demo = bool(emails)
    return {
        "success": True,
        "count": len(emails),
        "emails": [serialize_email(email) for email in emails],
        "demo": demo,
    }


def _lookup(
    email_store: EmailStore, samples: EmailStore, email_id: str
) -> Email | None:
    email = email_store.get(email_id)
    if email is None and is_sample_id(email_id):
        email = samples.get(email_id)
    return email


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


def _resolve_env_file() -> Path:
    override = os.getenv(_ENV_FILE_OVERRIDE_VAR)
    if override:
        return Path(override)
    return _DEFAULT_ENV_FILE


__all__ = ["create_app", "serialize_email", "serialize_suggestion"]
