"""IMAP transport adapter providing inbox access and IDLE push events."""

from __future__ import annotations

import logging
import ssl
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError

from ..core.config import ImapSettings
from ..core.interfaces import (
    MailTransport,
    TransportError,
    TransportFactory,
    TransportListener,
)
from ..core.models import EmailAccount, RawMessage

LOGGER = logging.getLogger(__name__)

# How long a single idle_check blocks before re-checking for waiting commands.
_IDLE_POLL_SECONDS = 1.0


class ImapTransport(MailTransport):
    """One IMAP connection for one account, backed by ``imapclient``.

    Commands issued by the session and the IDLE listener thread share the
    connection; the listener leaves IDLE whenever a command is waiting.
    """

    def __init__(
        self,
        account: EmailAccount,
        listener: TransportListener,
        settings: ImapSettings,
    ) -> None:
        """Initialise the transport without opening a connection."""
        self._account = account
        self._listener = listener
        self._settings = settings
        self._client: IMAPClient | None = None
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._waiting = 0
        self._no_waiters = threading.Event()
        self._no_waiters.set()
        self._closing = threading.Event()
        self._ended = False
        self._listener_thread: threading.Thread | None = None

    @classmethod
    def factory(cls, settings: ImapSettings) -> TransportFactory:
        """Return a transport factory bound to ``settings``."""

        def build(account: EmailAccount, listener: TransportListener) -> ImapTransport:
            return cls(account, listener, settings)

        return build

    # Public API ---------------------------------------------------------------
    def connect(self) -> None:
        """Open a TLS connection, authenticate, and emit ``on_ready``."""
        if self._client is not None:
            return
        account = self._account
        LOGGER.debug(
            "Connecting to IMAP host %s:%s as %s (verify certificates: %s)",
            account.host,
            account.port,
            account.user,
            self._settings.tls_verify,
        )
        try:
            client = IMAPClient(
                account.host,
                port=account.port,
                ssl=True,
                ssl_context=self._build_ssl_context(),
                timeout=self._settings.timeout_seconds,
            )
            client.login(account.user, account.password)
        except (IMAPClientError, OSError) as exc:
            raise TransportError(
                f"Failed to connect to {account.host}:{account.port}"
            ) from exc
        self._client = client
        self._listener.on_ready()

    def open_inbox(self) -> int | None:
        """Select the configured mailbox read-write; return its UIDVALIDITY."""
        with self._command("select mailbox") as client:
            status = client.select_folder(self._settings.mailbox, readonly=False)
        validity = status.get(b"UIDVALIDITY")
        return int(validity) if validity is not None else None

    def search_since(self, since: datetime) -> Sequence[int]:
        """Return UIDs of messages with an internal date on or after ``since``."""
        with self._command("search since") as client:
            return list(client.search(["SINCE", since.date()]))

    def search_unseen(self) -> Sequence[int]:
        """Return UIDs of messages without the ``\\Seen`` flag."""
        with self._command("search unseen") as client:
            return list(client.search(["UNSEEN"]))

    def fetch(self, uids: Sequence[int]) -> Iterable[RawMessage]:
        """Yield raw payloads in batches without setting the ``\\Seen`` flag."""
        for chunk in _chunked(uids, self._settings.fetch_batch_size):
            with self._command("fetch") as client:
                response = client.fetch(chunk, ["BODY.PEEK[]"])
            for uid in chunk:
                data = response.get(uid)
                payload = data.get(b"BODY[]") if data else None
                if payload is None:
                    LOGGER.warning(
                        "No body returned for UID %s of %s", uid, self._account.id
                    )
                    continue
                yield RawMessage(uid=uid, payload=payload)

    def start_listening(self) -> None:
        """Start the IDLE listener thread when the server supports IDLE."""
        client = self._require_client()
        if self._listener_thread is not None:
            return
        with self._command("capability check"):
            supports_idle = client.has_capability("IDLE")
        if not supports_idle:
            LOGGER.info(
                "Server for %s does not support IDLE; relying on polling",
                self._account.id,
            )
            return
        self._listener_thread = threading.Thread(
            target=self._listen,
            name=f"imap-idle-{self._account.id}",
            daemon=True,
        )
        self._listener_thread.start()

    def close(self) -> None:
        """Terminate the session without reporting an end event."""
        self._closing.set()
        client = self._client
        if client is None:
            return
        idling = self._listener_thread is not None and self._listener_thread.is_alive()
        try:
            if idling:
                # LOGOUT cannot be sent while the listener holds an IDLE command.
                client.shutdown()
            else:
                LOGGER.debug("Logging out of %s", self._account.host)
                client.logout()
        except (IMAPClientError, OSError):  # pragma: no cover - depends on server state
            LOGGER.debug("IMAP logout raised; suppressing during shutdown")
        finally:
            self._client = None

    # Internal helpers ---------------------------------------------------------
    def _build_ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._settings.tls_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _require_client(self) -> IMAPClient:
        if self._client is None:
            raise TransportError("IMAP connection has not been established")
        return self._client

    @contextmanager
    def _command(self, action: str) -> Iterator[IMAPClient]:
        """Run one command exclusively, interrupting IDLE if needed."""
        client = self._require_client()
        with self._state_lock:
            self._waiting += 1
            self._no_waiters.clear()
        try:
            with self._lock:
                try:
                    yield client
                except IMAPClientAbortError as exc:
                    self._emit_end()
                    raise TransportError(
                        f"IMAP connection lost during {action}"
                    ) from exc
                except OSError as exc:
                    self._emit_end()
                    raise TransportError(f"IMAP socket error during {action}") from exc
                except IMAPClientError as exc:
                    raise TransportError(f"IMAP {action} failed") from exc
        finally:
            with self._state_lock:
                self._waiting -= 1
                if self._waiting == 0:
                    self._no_waiters.set()

    def _listen(self) -> None:
        """Loop in IDLE, emitting ``on_new_mail`` for EXISTS responses."""
        LOGGER.debug("IDLE listener started for %s", self._account.id)
        while not self._closing.is_set():
            self._no_waiters.wait()
            client = self._client
            if client is None or self._closing.is_set():
                break
            try:
                with self._lock:
                    responses = self._idle_once(client)
            except (IMAPClientError, OSError) as exc:
                if self._closing.is_set():
                    break
                self._listener.on_error(exc)
                self._emit_end()
                break
            for count in _exists_counts(responses):
                self._listener.on_new_mail(count)
        LOGGER.debug("IDLE listener stopped for %s", self._account.id)

    def _idle_once(self, client: IMAPClient) -> list[tuple]:
        client.idle()
        collected: list[tuple] = []
        elapsed = 0.0
        try:
            while elapsed < self._settings.idle_timeout_seconds:
                collected.extend(client.idle_check(timeout=_IDLE_POLL_SECONDS))
                elapsed += _IDLE_POLL_SECONDS
                if collected or self._waiting or self._closing.is_set():
                    break
        finally:
            if not self._closing.is_set():
                collected.extend(client.idle_done()[1])
        return collected

    def _emit_end(self) -> None:
        with self._state_lock:
            if self._ended or self._closing.is_set():
                return
            self._ended = True
        self._listener.on_end()


def _exists_counts(responses: Iterable[tuple]) -> Iterator[int]:
    for response in responses:
        if len(response) < 2 or response[1] != b"EXISTS":
            continue
        if isinstance(response[0], int):
            yield response[0]


def _chunked(items: Sequence[int], size: int) -> Iterator[list[int]]:
    """Yield successive lists of ``size`` elements."""
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


__all__ = ["ImapTransport"]
