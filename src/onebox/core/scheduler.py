"""Delayed callbacks used for reconnect and poll timers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """A pending callback that can be cancelled."""

    def cancel(self) -> None:
        """Prevent the callback from running if it has not started yet."""
        raise NotImplementedError


class Scheduler(Protocol):
    """Runs callbacks after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule ``callback`` to run once after ``delay`` seconds."""
        raise NotImplementedError


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon :class:`threading.Timer` instances."""

    def __init__(self, name_prefix: str = "onebox-timer") -> None:
        self._name_prefix = name_prefix

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = f"{self._name_prefix}-{timer.name}"
        timer.start()
        return timer


__all__ = ["Scheduler", "ThreadingScheduler", "TimerHandle"]
