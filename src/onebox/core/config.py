"""Application configuration models and loader utilities."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field

from .models import EmailAccount

LOGGER = logging.getLogger(__name__)


class AccountSettings(BaseModel):
    """Static credentials for one mailbox account."""

    user: str | None = Field(default=None, description="Login user name")
    password: str | None = Field(
        default=None, repr=False, description="Login password or app password"
    )
    host: str = Field(default="imap.gmail.com", description="IMAP hostname")
    port: int = Field(default=993, description="IMAP port, typically 993 for TLS")


class ImapSettings(BaseModel):
    """Settings shared by every IMAP connection."""

    mailbox: str = Field(default="INBOX", description="Mailbox to mirror")
    tls_verify: bool = Field(
        default=False,
        description=(
            "Validate server certificates. Disabled by default so self-signed "
            "and test mail servers can be reached."
        ),
    )
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Socket timeout for IMAP commands"
    )
    idle_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum time a single IDLE command is kept open",
    )
    fetch_batch_size: int = Field(
        default=50, ge=1, description="Messages requested per FETCH command"
    )


class SyncSettings(BaseModel):
    """Settings controlling backfill and live detection cadence."""

    backfill_days: int = Field(
        default=30, ge=0, description="Days of history fetched on connect"
    )
    poll_interval_seconds: float = Field(
        default=30.0, gt=0, description="Interval of the unseen-mail poll"
    )
    reconnect_delay_seconds: float = Field(
        default=5.0, ge=0, description="Delay before each reconnect attempt"
    )


class LlmSettings(BaseModel):
    """Settings for the remote completion provider."""

    api_key: str | None = Field(
        default=None,
        repr=False,
        description="Provider credential; enables the remote categoriser",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API root",
    )
    model: str = Field(default="gpt-3.5-turbo", description="Model identifier")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for completions",
    )
    max_output_tokens: int | None = Field(
        default=50,
        ge=1,
        description="Maximum tokens to request from the provider",
    )
    max_attempts: int = Field(
        default=2, ge=1, description="Attempts per request before giving up"
    )


class NotificationSettings(BaseModel):
    """Outbound notification endpoints."""

    slack_webhook_url: str | None = Field(
        default=None, description="Slack incoming webhook URL"
    )
    webhook_url: str | None = Field(
        default=None, description="Generic JSON webhook URL"
    )
    timeout_seconds: float = Field(
        default=10.0, gt=0, description="Request timeout for notifications"
    )


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./onebox.db"), description="SQLite database path"
    )


class ReplySettings(BaseModel):
    """Settings for suggested replies."""

    meeting_link: str = Field(
        default="https://cal.com/example",
        description="Booking link inserted into reply templates",
    )
    context: str = Field(
        default=(
            "I am applying for a job position. If the lead is interested, "
            "share the meeting booking link."
        ),
        description="Background given to the model when drafting replies",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    accounts: dict[str, AccountSettings] = Field(default_factory=dict)
    imap: ImapSettings = Field(default_factory=ImapSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    notifications: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    storage: StorageSettings = Field(default_factory=StorageSettings)
    replies: ReplySettings = Field(default_factory=ReplySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def email_accounts(self) -> tuple[EmailAccount, ...]:
        """Return the fully configured accounts, ordered by id."""
        resolved: list[EmailAccount] = []
        for account_id in sorted(self.accounts):
            entry = self.accounts[account_id]
            if not entry.user or not entry.password:
                LOGGER.warning(
                    "Skipping account %s: user and password are required",
                    account_id,
                )
                continue
            resolved.append(
                EmailAccount(
                    id=account_id,
                    user=entry.user,
                    password=entry.password,
                    host=entry.host,
                    port=entry.port,
                )
            )
        return tuple(resolved)


ENV_PREFIX = "ONEBOX_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _coerce(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if value == "":
        return None
    lowercase_value = value.lower()
    if lowercase_value == "true":
        return True
    if lowercase_value == "false":
        return False
    return value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values: dict[str, Any] = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values: dict[str, Any] = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    for key, value in {**file_values, **env_values}.items():
        path = _normalize_key(key)
        if not path:
            continue
        _merge_into_tree(collected, path, _coerce(value))

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AccountSettings",
    "AppSettings",
    "ImapSettings",
    "LlmSettings",
    "LoggingSettings",
    "NotificationSettings",
    "ReplySettings",
    "StorageSettings",
    "SyncSettings",
    "load_app_settings",
]
