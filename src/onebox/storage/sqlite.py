"""SQLite-backed email store implementation."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from types import TracebackType
from typing import Any

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime, utc_now
from ..core.interfaces import EmailStore, StoreError
from ..core.models import Category, Email, SearchFilter

LOGGER = logging.getLogger(__name__)

_SELECT_COLUMNS = """
    id, account_id, message_id, sender, recipients, subject, body,
    sent_at, folder, category, is_read, attachments
"""

_TEXT_COLUMNS = ("subject", "body", "sender", "recipients")
_TEXT_MATCH = (
    "("
    + " OR ".join(f"lower({column}) LIKE ? ESCAPE '\\'" for column in _TEXT_COLUMNS)
    + ")"
)


class SqliteEmailStore(EmailStore):
    """Persist normalized emails using SQLite; safe for concurrent writers."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and apply migrations."""
        self._settings = settings
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._connection = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to open database at {db_path}") from exc
        self._connection.row_factory = sqlite3.Row
        self._apply_migrations()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteEmailStore:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # EmailStore API ----------------------------------------------------------
    def upsert(self, email_id: str, email: Email) -> None:
        """Insert or replace the record stored under ``email_id``."""
        LOGGER.debug("Upserting email %s (%s)", email_id, email.message_id)
        params = (
            email_id,
            email.account_id,
            email.message_id,
            email.sender,
            json.dumps(list(email.to)),
            email.subject,
            email.body,
            serialize_datetime(email.date),
            email.folder,
            email.category.value if email.category else None,
            int(email.read),
            json.dumps(list(email.attachments)),
            serialize_datetime(utc_now()),
        )
        self._execute(
            """
            INSERT INTO emails (
                id, account_id, message_id, sender, recipients, subject, body,
                sent_at, folder, category, is_read, attachments, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                account_id=excluded.account_id,
                message_id=excluded.message_id,
                sender=excluded.sender,
                recipients=excluded.recipients,
                subject=excluded.subject,
                body=excluded.body,
                sent_at=excluded.sent_at,
                folder=excluded.folder,
                category=excluded.category,
                is_read=excluded.is_read,
                attachments=excluded.attachments,
                updated_at=excluded.updated_at
            """,
            params,
        )

    def query(self, search: SearchFilter) -> list[Email]:
        """Return emails matching ``search`` ordered by date, newest first."""
        clauses: list[str] = []
        params: list[Any] = []
        if search.text:
            pattern = f"%{_escape_like(search.text.lower())}%"
            clauses.append(_TEXT_MATCH)
            params.extend([pattern] * len(_TEXT_COLUMNS))
        if search.account_id:
            clauses.append("account_id = ?")
            params.append(search.account_id)
        if search.folder:
            clauses.append("folder = ?")
            params.append(search.folder)
        if search.category is not None:
            clauses.append("category = ?")
            params.append(search.category.value)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([max(search.limit, 0), max(search.offset, 0)])
        rows = self._fetchall(
            f"SELECT {_SELECT_COLUMNS} FROM emails {where} "
            "ORDER BY sent_at DESC LIMIT ? OFFSET ?",
            params,
        )
        return [_row_to_email(row) for row in rows]

    def get(self, email_id: str) -> Email | None:
        """Return the stored email or ``None``."""
        rows = self._fetchall(
            f"SELECT {_SELECT_COLUMNS} FROM emails WHERE id = ?", (email_id,)
        )
        return _row_to_email(rows[0]) if rows else None

    def update_category(self, email_id: str, category: Category) -> None:
        """Overwrite the category of a stored email."""
        cursor = self._execute(
            "UPDATE emails SET category = ?, updated_at = ? WHERE id = ?",
            (category.value, serialize_datetime(utc_now()), email_id),
        )
        if cursor.rowcount == 0:
            raise StoreError(f"Email {email_id} not found")

    def count(self) -> int:
        """Return the number of stored emails."""
        rows = self._fetchall("SELECT COUNT(*) AS total FROM emails", ())
        return int(rows[0]["total"])

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        with self._lock:
            self._connection.close()

    # Internal helpers --------------------------------------------------------
    def _execute(self, sql: str, params: Any) -> sqlite3.Cursor:
        try:
            with self._lock, self._connection:
                return self._connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(f"SQLite write failed: {exc}") from exc

    def _fetchall(self, sql: str, params: Any) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self._connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"SQLite read failed: {exc}") from exc

    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        for migration in sorted(schema_dir.glob("*.sql")):
            LOGGER.debug("Applying migration %s", migration.name)
            script = migration.read_text(encoding="utf-8")
            try:
                with self._lock, self._connection:
                    self._connection.executescript(script)
            except sqlite3.Error as exc:
                raise StoreError(f"Migration {migration.name} failed") from exc


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_email(row: sqlite3.Row) -> Email:
    category = Category.from_label(row["category"]) if row["category"] else None
    return Email(
        id=row["id"],
        account_id=row["account_id"],
        message_id=row["message_id"],
        sender=row["sender"],
        to=tuple(json.loads(row["recipients"] or "[]")),
        subject=row["subject"],
        body=row["body"],
        date=parse_datetime(row["sent_at"]),
        folder=row["folder"],
        category=category,
        read=bool(row["is_read"]),
        attachments=tuple(json.loads(row["attachments"] or "[]")),
    )


__all__ = ["SqliteEmailStore"]
