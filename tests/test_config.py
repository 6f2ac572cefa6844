"""Tests for configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from onebox.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.accounts == {}
    assert settings.imap.mailbox == "INBOX"
    assert settings.imap.tls_verify is False
    assert settings.sync.backfill_days == 30
    assert settings.sync.poll_interval_seconds == 30.0
    assert settings.sync.reconnect_delay_seconds == 5.0
    assert settings.llm.api_key is None
    assert settings.storage.db_path == Path("./onebox.db")


def test_env_file_defines_accounts(tmp_path: Path) -> None:
    """Nested account keys in an env file should build account settings."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "\n".join(
            [
                "ONEBOX_ACCOUNTS__ACCOUNT1__USER=one@example.com",
                "ONEBOX_ACCOUNTS__ACCOUNT1__PASSWORD=secret-1",
                "ONEBOX_ACCOUNTS__ACCOUNT2__USER=two@example.com",
                "ONEBOX_ACCOUNTS__ACCOUNT2__PASSWORD=secret-2",
                "ONEBOX_ACCOUNTS__ACCOUNT2__HOST=imap.example.com",
                "ONEBOX_ACCOUNTS__ACCOUNT2__PORT=1993",
                "ONEBOX_SYNC__POLL_INTERVAL_SECONDS=10",
                "ONEBOX_IMAP__TLS_VERIFY=true",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    accounts = settings.email_accounts()

    assert [account.id for account in accounts] == ["account1", "account2"]
    assert accounts[0].host == "imap.gmail.com"
    assert accounts[0].port == 993
    assert accounts[1].host == "imap.example.com"
    assert accounts[1].port == 1993
    assert settings.sync.poll_interval_seconds == 10.0
    assert settings.imap.tls_verify is True


def test_incomplete_accounts_are_skipped(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text(
        "ONEBOX_ACCOUNTS__ACCOUNT1__USER=one@example.com\n", encoding="utf-8"
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    with caplog.at_level(logging.WARNING):
        accounts = settings.email_accounts()

    assert accounts == ()
    assert "Skipping account account1" in caplog.text


def test_environment_overrides_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("ONEBOX_LLM__MODEL=from-file\n", encoding="utf-8")
    monkeypatch.setenv("ONEBOX_LLM__MODEL", "from-env")

    settings = load_app_settings(env_file=env_file)

    assert settings.llm.model == "from-env"


def test_account_password_hidden_from_repr(tmp_path: Path) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text(
        "ONEBOX_ACCOUNTS__ACCOUNT1__USER=one@example.com\n"
        "ONEBOX_ACCOUNTS__ACCOUNT1__PASSWORD=hunter2\n",
        encoding="utf-8",
    )
    settings = load_app_settings(env_file=env_file, include_environment=False)

    account = settings.email_accounts()[0]

    assert "hunter2" not in repr(account)
    assert "hunter2" not in repr(settings.accounts["account1"])
