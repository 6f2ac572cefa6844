"""In-memory email store used for sample data and tests."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace

from ..core.interfaces import EmailStore, StoreError
from ..core.models import Category, Email, SearchFilter


class InMemoryEmailStore(EmailStore):
    """Dictionary-backed store with the same query semantics as SQLite."""

    def __init__(self, emails: Iterable[Email] = ()) -> None:
        self._lock = threading.Lock()
        self._emails: dict[str, Email] = {email.id: email for email in emails}

    def upsert(self, email_id: str, email: Email) -> None:
        with self._lock:
            self._emails[email_id] = replace(email)

    def query(self, search: SearchFilter) -> list[Email]:
        with self._lock:
            candidates = list(self._emails.values())
        matches = [email for email in candidates if _matches(email, search)]
        matches.sort(key=lambda email: email.date, reverse=True)
        start = max(search.offset, 0)
        return matches[start : start + max(search.limit, 0)]

    def get(self, email_id: str) -> Email | None:
        with self._lock:
            return self._emails.get(email_id)

    def update_category(self, email_id: str, category: Category) -> None:
        with self._lock:
            email = self._emails.get(email_id)
            if email is None:
                raise StoreError(f"Email {email_id} not found")
            email.category = category

    def __len__(self) -> int:
        with self._lock:
            return len(self._emails)


def _matches(email: Email, search: SearchFilter) -> bool:
    if search.account_id and email.account_id != search.account_id:
        return False
    if search.folder and email.folder != search.folder:
        return False
    if search.category is not None and email.category != search.category:
        return False
    if search.text:
        needle = search.text.lower()
        haystack = " ".join(
            (email.subject, email.body, email.sender, " ".join(email.to))
        ).lower()
        if needle not in haystack:
            return False
    return True


__all__ = ["InMemoryEmailStore"]
