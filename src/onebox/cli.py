"""Command-line entry point for Onebox."""

from __future__ import annotations

import argparse
import threading
from pathlib import Path

from onebox.core import (
    AppSettings,
    build_services,
    configure_logging,
    load_app_settings,
)
from onebox.core.container import COORDINATOR, ServiceContainer
from onebox.core.interfaces import AccountNotFoundError


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Onebox multi-account mail sync")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "accounts", "sync"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--account",
        dest="account",
        default=None,
        help="Sync only this account id (sync command).",
    )
    return parser


def execute(
    args: argparse.Namespace,
    settings: AppSettings,
    *,
    services: ServiceContainer | None = None,
    stop_event: threading.Event | None = None,
) -> int:
    """Execute the requested CLI command and return the exit status."""
    command = args.command
    if command == "info":
        accounts = settings.email_accounts()
        engine = "remote model" if settings.llm.api_key else "pattern"
        print("Onebox is ready. Configure accounts to start syncing.")
        print(f"Configured accounts: {len(accounts)}")
        print(f"Categoriser: {engine}")
        print(f"Database path: {settings.storage.db_path}")
        return 0
    if command == "accounts":
        accounts = settings.email_accounts()
        if not accounts:
            print("No email accounts configured.")
            return 0
        for account in accounts:
            print(f"{account.id:<12}  {account.user}  {account.host}:{account.port}")
        return 0
    if command == "sync":
        return _run_sync(
            settings,
            account_id=args.account,
            services=services,
            stop_event=stop_event,
        )
    return 2


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


def _run_sync(
    settings: AppSettings,
    *,
    account_id: str | None,
    services: ServiceContainer | None,
    stop_event: threading.Event | None,
) -> int:
    """Run sessions until interrupted."""
    container = services or build_services(settings)
    coordinator = container.resolve(COORDINATOR)
    stop = stop_event or threading.Event()
    try:
        if account_id:
            try:
                coordinator.sync_account(account_id)
            except AccountNotFoundError as exc:
                print(f"Sync failed: {exc}")
                return 1
        elif coordinator.start() == 0:
            print("No email accounts configured.")
            return 1
        print("Syncing; press Ctrl+C to stop.")
        try:
            stop.wait()
        except KeyboardInterrupt:
            print("Stopping...")
    finally:
        container.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
