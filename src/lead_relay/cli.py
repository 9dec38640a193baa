#!/usr/bin/env python3
"""Command-line entry point for the lead relay service.

Usage:
    lead-relay serve --port 8080
    lead-relay check-env
    lead-relay init-db
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from .config import ConfigError, config
from .logging_utils import setup_logging

REQUIRED_VARS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "DATABASE_URL",
]
OPTIONAL_VARS = [
    "DEFAULT_WEBHOOK_URL",
    "WEBHOOK_MAX_ATTEMPTS",
    "WEBHOOK_TIMEOUT_SECONDS",
    "MAX_RESULTS_CAP",
    "DEFAULT_LOCALE",
]


def check_environment() -> dict[str, bool]:
    """Check which relay settings are configured.

    Returns:
        Dictionary mapping setting names to their availability.
    """
    return {
        name: bool(getattr(config, name, ""))
        for name in REQUIRED_VARS + OPTIONAL_VARS
    }


def print_env_status(status: dict[str, bool], verbose: bool = False) -> bool:
    """Print configuration status.

    Returns:
        True if every required setting is present.
    """
    print("\nEnvironment Status:")
    print("-" * 40)

    missing_required = []
    for var in REQUIRED_VARS:
        symbol = "✓" if status.get(var) else "✗"
        print(f"  [{symbol}] {var} (required)")
        if not status.get(var):
            missing_required.append(var)

    if verbose:
        print()
        for var in OPTIONAL_VARS:
            symbol = "✓" if status.get(var) else "-"
            print(f"  [{symbol}] {var} (optional)")

    print("-" * 40)

    if missing_required:
        print(f"\nError: Missing required environment variables: {', '.join(missing_required)}")
        return False

    return True


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="lead-relay",
        description="Lead search webhook relay",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP relay")
    serve.add_argument("--host", default=config.API_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=config.API_PORT, help="Bind port")

    subparsers.add_parser("check-env", help="Check environment variables and exit")
    subparsers.add_parser("init-db", help="Create the relay tables (development)")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    args = create_parser().parse_args(argv)

    if args.command == "check-env":
        return 0 if print_env_status(check_environment(), verbose=True) else 1

    setup_logging(level="DEBUG" if args.verbose else config.LOG_LEVEL.upper())

    if args.command == "init-db":
        from .db import close_database, init_database

        async def _init() -> None:
            try:
                await init_database()
            finally:
                await close_database()

        try:
            config.validate_for_database()
        except ConfigError as e:
            print(f"Error: {e}")
            return 1
        asyncio.run(_init())
        print("Database tables created.")
        return 0

    try:
        config.validate_all()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    import uvicorn

    uvicorn.run("lead_relay.app:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
