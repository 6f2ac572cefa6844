"""Start, track and resync one session per configured account."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from ..core.interfaces import AccountNotFoundError
from ..core.models import EmailAccount, SessionState
from .session import AccountSession

LOGGER = logging.getLogger(__name__)

AccountSource = Callable[[], Sequence[EmailAccount]]
SessionFactory = Callable[[EmailAccount], AccountSession]


class SyncCoordinator:
    """Own the account id to session map.

    The account source is read once by :meth:`start` and again only when a
    manual resync is requested. A resync starts a fresh session without
    cancelling the one already running; the newer session replaces the old
    one in the map. At most one superseded session is kept per account: a
    further resync stops it, and :meth:`stop` shuts down whatever remains.
    """

    def __init__(
        self, account_source: AccountSource, session_factory: SessionFactory
    ) -> None:
        self._account_source = account_source
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._sessions: dict[str, AccountSession] = {}
        self._superseded: dict[str, AccountSession] = {}
        self._started = False

    def start(self) -> int:
        """Create and start a session for every account; return how many."""
        with self._lock:
            if self._started:
                return len(self._sessions)
            self._started = True

        accounts = list(self._account_source())
        if not accounts:
            LOGGER.warning("No email accounts configured")
            return 0

        LOGGER.info("Initializing sync for %s account(s)", len(accounts))
        for account in accounts:
            self._launch(account)
        return len(accounts)

    def stop(self) -> None:
        """Stop every session started so far, including superseded ones."""
        with self._lock:
            sessions = [*self._sessions.values(), *self._superseded.values()]
            self._sessions.clear()
            self._superseded.clear()
            self._started = False
        for session in sessions:
            session.stop()
        LOGGER.info("Stopped %s session(s)", len(sessions))

    def sync_account(self, account_id: str) -> AccountSession:
        """Start a fresh session for ``account_id``.

        Raises:
            AccountNotFoundError: if the account source does not contain the
                id. The session map is left untouched in that case.
        """
        account = self._find_account(account_id)
        LOGGER.info("Manual sync requested for %s", account_id)
        return self._launch(account)

    def restart(self, account_id: str) -> AccountSession:
        """Stop the current session for ``account_id`` and start a new one."""
        account = self._find_account(account_id)
        with self._lock:
            previous = self._sessions.pop(account_id, None)
            superseded = self._superseded.pop(account_id, None)
        for stale in (previous, superseded):
            if stale is not None:
                stale.stop()
        return self._launch(account)

    # Accessors ----------------------------------------------------------------
    def session(self, account_id: str) -> AccountSession | None:
        with self._lock:
            return self._sessions.get(account_id)

    def sessions(self) -> dict[str, AccountSession]:
        with self._lock:
            return dict(self._sessions)

    def states(self) -> dict[str, SessionState]:
        """Return the current state of every tracked session."""
        return {
            account_id: session.state
            for account_id, session in self.sessions().items()
        }

    def account_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)

    # Internal helpers ---------------------------------------------------------
    def _find_account(self, account_id: str) -> EmailAccount:
        for account in self._account_source():
            if account.id == account_id:
                return account
        raise AccountNotFoundError(account_id)

    def _launch(self, account: EmailAccount) -> AccountSession:
        session = self._session_factory(account)
        retired = None
        with self._lock:
            previous = self._sessions.get(account.id)
            if previous is not None:
                retired = self._superseded.pop(account.id, None)
                self._superseded[account.id] = previous
            self._sessions[account.id] = session
        if retired is not None:
            LOGGER.info("Stopping superseded session for %s", account.id)
            retired.stop()
        session.start()
        return session


__all__ = ["AccountSource", "SessionFactory", "SyncCoordinator"]
