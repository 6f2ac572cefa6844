"""Service container and the default wiring of the sync engine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from .config import AppSettings
from .models import EmailAccount

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

STORE = "store"
LLM_CLIENT = "llm_client"
CATEGORIZER = "categorizer"
NOTIFIER = "notifier"
ROUTER = "router"
PIPELINE = "pipeline"
SCHEDULER = "scheduler"
COORDINATOR = "coordinator"
REPLY_SUGGESTER = "reply_suggester"


class ServiceContainer:
    """Minimal dependency container with lazy singleton semantics."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[ServiceContainer], Any]] = {}
        self._instances: dict[str, Any] = {}

    def register(self, key: str, factory: Callable[[ServiceContainer], T]) -> None:
        """Register a factory under a given key, dropping any cached instance."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def provide(self, key: str, instance: Any) -> None:
        """Register an already constructed instance."""
        self._factories[key] = lambda _container: instance
        self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        """Resolve a dependency by key, invoking its factory once."""
        if key in self._instances:
            return self._instances[key]
        if key not in self._factories:
            msg = f"Service '{key}' is not registered"
            raise KeyError(msg)
        instance = self._factories[key](self)
        self._instances[key] = instance
        return instance

    def try_resolve(self, key: str) -> Any | None:
        """Resolve a dependency if available; return None otherwise."""
        try:
            return self.resolve(key)
        except KeyError:
            return None

    def close(self) -> None:
        """Stop the coordinator and release resolved resources."""
        coordinator = self._instances.get(COORDINATOR)
        if coordinator is not None:
            coordinator.stop()
        for key in (NOTIFIER, LLM_CLIENT, STORE):
            closer = getattr(self._instances.get(key), "close", None)
            if callable(closer):
                closer()
        self._instances.clear()


def build_services(settings: AppSettings) -> ServiceContainer:
    """Register the production implementations for ``settings``.

    Nothing is constructed until it is resolved, so callers may replace any
    entry with :meth:`ServiceContainer.provide` first.
    """
    # pylint: disable=import-outside-toplevel
    from ..ingestion.coordinator import SyncCoordinator
    from ..ingestion.normalizer import EmailNormalizer
    from ..ingestion.pipeline import MessagePipeline
    from ..ingestion.router import SideEffectRouter
    from ..ingestion.session import AccountSession
    from ..intelligence import ChatCompletionClient, ReplySuggester, build_categorizer
    from ..storage import SqliteEmailStore
    from ..transport import ImapTransport, WebhookNotifier
    from .scheduler import ThreadingScheduler

    container = ServiceContainer()
    container.register(STORE, lambda _c: SqliteEmailStore(settings.storage))
    container.register(
        LLM_CLIENT,
        lambda _c: ChatCompletionClient(settings.llm) if settings.llm.api_key else None,
    )
    container.register(
        CATEGORIZER,
        lambda c: build_categorizer(settings.llm, llm_client=c.resolve(LLM_CLIENT)),
    )
    container.register(NOTIFIER, lambda _c: WebhookNotifier(settings.notifications))
    container.register(
        ROUTER,
        lambda c: SideEffectRouter(c.resolve(STORE), c.resolve(NOTIFIER)),
    )
    container.register(
        PIPELINE,
        lambda c: MessagePipeline(
            EmailNormalizer(folder=settings.imap.mailbox),
            c.resolve(CATEGORIZER),
            c.resolve(ROUTER),
        ),
    )
    container.register(SCHEDULER, lambda _c: ThreadingScheduler())

    def _coordinator(c: ServiceContainer) -> SyncCoordinator:
        transport_factory = ImapTransport.factory(settings.imap)
        pipeline = c.resolve(PIPELINE)
        scheduler = c.resolve(SCHEDULER)

        def session_factory(account: EmailAccount) -> AccountSession:
            return AccountSession(
                account,
                transport_factory,
                pipeline,
                scheduler=scheduler,
                settings=settings.sync,
            )

        return SyncCoordinator(settings.email_accounts, session_factory)

    container.register(COORDINATOR, _coordinator)
    container.register(
        REPLY_SUGGESTER,
        lambda c: ReplySuggester(
            c.resolve(LLM_CLIENT), c.resolve(CATEGORIZER), settings.replies
        ),
    )
    LOGGER.debug("Registered services for %s account(s)", len(settings.accounts))
    return container


__all__ = [
    "CATEGORIZER",
    "COORDINATOR",
    "LLM_CLIENT",
    "NOTIFIER",
    "PIPELINE",
    "REPLY_SUGGESTER",
    "ROUTER",
    "SCHEDULER",
    "STORE",
    "ServiceContainer",
    "build_services",
]
