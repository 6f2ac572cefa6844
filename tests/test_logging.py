"""Tests for logging utilities."""

from __future__ import annotations

import logging

from onebox.core.config import LoggingSettings
from onebox.core.logging import configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_third_party_loggers_quietened_outside_debug() -> None:
    configure_logging(LoggingSettings(level="INFO"))

    assert logging.getLogger("imapclient").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
