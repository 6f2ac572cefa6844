"""Ingestion pipeline components."""

from .coordinator import SyncCoordinator
from .normalizer import EmailNormalizer
from .pipeline import MessagePipeline, NormalizerProtocol
from .router import SideEffectRouter
from .session import AccountSession, SessionEvent, SessionEventKind

__all__ = [
    "AccountSession",
    "EmailNormalizer",
    "MessagePipeline",
    "NormalizerProtocol",
    "SessionEvent",
    "SessionEventKind",
    "SideEffectRouter",
    "SyncCoordinator",
]
