"""Persistent per-account mailbox session driven by an event queue.

Every state transition happens on the session's worker thread while it
consumes :class:`SessionEvent` items. Transport callbacks and timers only
enqueue events, so backfill, push-triggered fetches and poll-triggered
fetches for one account never run concurrently.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ..core.config import SyncSettings
from ..core.datetime_utils import utc_now
from ..core.interfaces import (
    MailTransport,
    TransportError,
    TransportFactory,
    TransportListener,
)
from ..core.models import EmailAccount, SessionState
from ..core.scheduler import Scheduler, TimerHandle
from .pipeline import MessagePipeline

LOGGER = logging.getLogger(__name__)


class SessionEventKind(Enum):
    """Inputs of the session state machine."""

    CONNECT = "connect"
    READY = "ready"
    NEW_MAIL = "new_mail"
    POLL = "poll"
    ERROR = "error"
    END = "end"
    STOP = "stop"


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """One queued input; ``generation`` ties it to a specific connection."""

    kind: SessionEventKind
    generation: int = 0
    count: int = 0
    error: BaseException | None = None


class _ConnectionListener(TransportListener):
    """Forward transport callbacks of one connection onto the session queue."""

    def __init__(self, session: AccountSession, generation: int) -> None:
        self._session = session
        self._generation = generation

    def on_ready(self) -> None:
        self._post(SessionEventKind.READY)

    def on_new_mail(self, count: int) -> None:
        self._post(SessionEventKind.NEW_MAIL, count=count)

    def on_error(self, error: BaseException) -> None:
        self._post(SessionEventKind.ERROR, error=error)

    def on_end(self) -> None:
        self._post(SessionEventKind.END)

    def _post(
        self,
        kind: SessionEventKind,
        *,
        count: int = 0,
        error: BaseException | None = None,
    ) -> None:
        self._session.post(
            SessionEvent(kind, generation=self._generation, count=count, error=error)
        )


class AccountSession:
    """Own one mailbox connection: connect, backfill, live updates, reconnect."""

    def __init__(
        self,
        account: EmailAccount,
        transport_factory: TransportFactory,
        pipeline: MessagePipeline,
        *,
        scheduler: Scheduler,
        settings: SyncSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._account = account
        self._transport_factory = transport_factory
        self._pipeline = pipeline
        self._scheduler = scheduler
        self._settings = settings
        self._clock = clock

        self._queue: queue.Queue[SessionEvent] = queue.Queue()
        self._state = SessionState.DISCONNECTED
        self._generation = 0
        self._transport: MailTransport | None = None
        self._poll_handle: TimerHandle | None = None
        self._retry_handle: TimerHandle | None = None
        self._routed_uids: set[int] = set()
        self._uid_validity: int | None = None
        self._fetch_lock = threading.Lock()
        self._stopped = threading.Event()
        self._worker: threading.Thread | None = None

    @property
    def account(self) -> EmailAccount:
        return self._account

    @property
    def state(self) -> SessionState:
        return self._state

    # Lifecycle ----------------------------------------------------------------
    def start(self) -> None:
        """Spawn the worker thread and request the first connection."""
        if self._worker is not None:
            return
        self._worker = threading.Thread(
            target=self.run,
            name=f"session-{self._account.id}",
            daemon=True,
        )
        self._worker.start()
        self.request_connect()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Shut the session down; no reconnect is scheduled afterwards."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        LOGGER.info("Stopping session for %s", self._account.id)
        for handle in (self._poll_handle, self._retry_handle):
            if handle is not None:
                handle.cancel()
        self._poll_handle = None
        self._retry_handle = None
        self.post(SessionEvent(SessionEventKind.STOP))
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)
        self._close_transport()
        self._state = SessionState.DISCONNECTED

    def request_connect(self) -> None:
        """Queue a connection attempt."""
        self.post(SessionEvent(SessionEventKind.CONNECT))

    def post(self, event: SessionEvent) -> None:
        """Enqueue ``event``; safe to call from any thread."""
        self._queue.put(event)

    def run(self) -> None:
        """Consume events until a STOP event arrives."""
        while True:
            event = self._queue.get()
            if event.kind is SessionEventKind.STOP:
                break
            self.handle(event)
        LOGGER.debug("Session worker for %s exited", self._account.id)

    def process_pending(self) -> int:
        """Handle every queued event on the calling thread; return how many."""
        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if event.kind is not SessionEventKind.STOP:
                self.handle(event)
            handled += 1

    def handle(self, event: SessionEvent) -> None:
        """Apply one event to the state machine."""
        if self._stopped.is_set():
            return
        handlers = {
            SessionEventKind.CONNECT: self._on_connect,
            SessionEventKind.READY: self._on_ready,
            SessionEventKind.NEW_MAIL: self._on_new_mail,
            SessionEventKind.POLL: self._on_poll,
            SessionEventKind.ERROR: self._on_error,
            SessionEventKind.END: self._on_end,
        }
        try:
            handlers[event.kind](event)
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception(
                "Unexpected error handling %s for %s",
                event.kind.value,
                self._account.id,
            )
            if self._state is not SessionState.DISCONNECTED:
                self._fail_connection("unexpected error")

    # Live detection -----------------------------------------------------------
    def fetch_new_messages(self) -> int:
        """Search for unseen mail and route it; return how many were processed."""
        with self._fetch_lock:
            transport = self._transport
            if transport is None or self._state is not SessionState.LIVE:
                return 0
            try:
                uids = transport.search_unseen()
                return self._fetch_batch(transport, uids)
            except TransportError as exc:
                LOGGER.warning(
                    "Fetching new mail failed for %s: %s", self._account.user, exc
                )
                return 0

    # Event handlers -----------------------------------------------------------
    def _on_connect(self, event: SessionEvent) -> None:
        del event
        self._retry_handle = None
        if self._state not in (SessionState.DISCONNECTED, SessionState.RECONNECTING):
            LOGGER.debug(
                "Ignoring connect for %s in state %s",
                self._account.id,
                self._state.value,
            )
            return

        self._generation += 1
        self._set_state(SessionState.CONNECTING)
        transport = self._transport_factory(
            self._account, _ConnectionListener(self, self._generation)
        )
        self._transport = transport
        try:
            transport.connect()
        except Exception as exc:  # pylint: disable=broad-except
            self._fail_connection(f"connect failed: {exc}")

    def _on_ready(self, event: SessionEvent) -> None:
        if self._is_stale(event) or self._state is not SessionState.CONNECTING:
            return
        transport = self._transport
        if transport is None:
            return
        LOGGER.info("Connected to %s", self._account.user)
        self._set_state(SessionState.BACKFILLING)
        try:
            with self._fetch_lock:
                self._check_uid_validity(transport.open_inbox())
                self._backfill(transport)
        except Exception as exc:  # pylint: disable=broad-except
            self._fail_connection(f"backfill failed: {exc}")
            return

        # Live detection is armed only once the backfill loop has finished.
        self._set_state(SessionState.LIVE)
        self._arm_poll()
        try:
            transport.start_listening()
        except TransportError as exc:
            LOGGER.warning(
                "Push notifications unavailable for %s, polling only: %s",
                self._account.user,
                exc,
            )

    def _on_new_mail(self, event: SessionEvent) -> None:
        if self._is_stale(event):
            return
        if self._state is not SessionState.LIVE:
            LOGGER.debug(
                "Ignoring new-mail signal for %s while %s",
                self._account.id,
                self._state.value,
            )
            return
        LOGGER.info("%s message(s) in inbox of %s", event.count, self._account.user)
        self.fetch_new_messages()

    def _on_poll(self, event: SessionEvent) -> None:
        if self._is_stale(event):
            return
        self._poll_handle = None
        if self._state is not SessionState.LIVE:
            return
        self.fetch_new_messages()
        if self._state is SessionState.LIVE and not self._is_stale(event):
            self._arm_poll()

    def _on_error(self, event: SessionEvent) -> None:
        if self._is_stale(event):
            return
        LOGGER.warning("IMAP error for %s: %s", self._account.user, event.error)

    def _on_end(self, event: SessionEvent) -> None:
        if self._is_stale(event):
            return
        if self._state in (SessionState.DISCONNECTED, SessionState.RECONNECTING):
            return
        LOGGER.info(
            "Connection ended for %s; reconnecting in %ss",
            self._account.user,
            self._settings.reconnect_delay_seconds,
        )
        self._teardown()
        self._set_state(SessionState.RECONNECTING)
        self._schedule_connect()

    # Internal helpers ---------------------------------------------------------
    def _backfill(self, transport: MailTransport) -> int:
        since = self._clock() - timedelta(days=self._settings.backfill_days)
        uids = transport.search_since(since)
        if not uids:
            LOGGER.info("No emails found for %s", self._account.user)
            return 0
        LOGGER.info("Fetching %s emails for %s", len(uids), self._account.user)
        processed = self._fetch_batch(transport, uids)
        LOGGER.info("Finished fetching emails for %s", self._account.user)
        return processed

    def _check_uid_validity(self, validity: int | None) -> None:
        """Forget routed UIDs when the server renumbered the mailbox."""
        if validity == self._uid_validity:
            return
        if self._routed_uids:
            LOGGER.info(
                "UIDVALIDITY of %s changed (%s -> %s); re-routing mailbox",
                self._account.user,
                self._uid_validity,
                validity,
            )
            self._routed_uids.clear()
        self._uid_validity = validity

    def _fetch_batch(self, transport: MailTransport, uids: Sequence[int]) -> int:
        pending = [uid for uid in uids if uid not in self._routed_uids]
        if not pending:
            return 0
        processed = 0
        for message in transport.fetch(pending):
            if message.uid in self._routed_uids:
                continue
            try:
                self._pipeline.process(message, self._account)
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception(
                    "Processing UID %s failed for %s", message.uid, self._account.id
                )
            self._routed_uids.add(message.uid)
            processed += 1
        return processed

    def _fail_connection(self, reason: str) -> None:
        LOGGER.warning(
            "Session for %s disconnected (%s); retrying in %ss",
            self._account.user,
            reason,
            self._settings.reconnect_delay_seconds,
        )
        self._teardown()
        self._set_state(SessionState.DISCONNECTED)
        self._schedule_connect()

    def _teardown(self) -> None:
        """Abandon the current connection; its late events become stale."""
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._generation += 1
        self._close_transport()

    def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Closing transport for %s raised: %s", self._account.id, exc)

    def _schedule_connect(self) -> None:
        if self._stopped.is_set() or self._retry_handle is not None:
            return
        self._retry_handle = self._scheduler.call_later(
            self._settings.reconnect_delay_seconds, self.request_connect
        )

    def _arm_poll(self) -> None:
        generation = self._generation
        self._poll_handle = self._scheduler.call_later(
            self._settings.poll_interval_seconds,
            lambda: self.post(
                SessionEvent(SessionEventKind.POLL, generation=generation)
            ),
        )

    def _is_stale(self, event: SessionEvent) -> bool:
        return event.generation != self._generation

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            LOGGER.debug(
                "Session %s: %s -> %s", self._account.id, self._state.value, state.value
            )
        self._state = state


__all__ = ["AccountSession", "SessionEvent", "SessionEventKind"]
