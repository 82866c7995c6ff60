"""Payroll lifecycle command line interface.

Usage:
    python -m payroll_lifecycle.cli serve --port 8000
    python -m payroll_lifecycle.cli init-db
    python -m payroll_lifecycle.cli issue-token --user-id X --role hr
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta
from typing import Callable
from uuid import UUID

from payroll_lifecycle.config import configure_logging, get_settings


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PayrollCli:
    """Payroll lifecycle Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="payroll-lifecycle",
            description="Payroll lifecycle service tools",
        )
        parser.add_argument(
            "--log-level",
            help="Override LOG_LEVEL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        serve = subparsers.add_parser("serve", help="Run the API server")
        serve.add_argument("--host", help="Bind address (default: HOST)")
        serve.add_argument("--port", type=int, help="Bind port (default: PORT)")
        serve.add_argument(
            "--reload",
            action="store_true",
            help="Reload on code changes",
        )

        subparsers.add_parser("init-db", help="Create database tables")

        token = subparsers.add_parser(
            "issue-token",
            help="Issue a bearer token for an existing user",
        )
        token.add_argument(
            "--user-id",
            type=parse_uuid,
            required=True,
            help="User UUID placed in the token subject",
        )
        token.add_argument(
            "--role",
            choices=["hr", "department_head", "employee"],
            default="hr",
            help="Role claim (the server re-reads the user's role)",
        )
        token.add_argument(
            "--expires-minutes",
            type=int,
            help="Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "issue-token": self._cmd_issue_token,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        """Run the API with uvicorn."""
        import uvicorn

        settings = get_settings()
        uvicorn.run(
            "payroll_lifecycle.api.app:app",
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload or settings.debug,
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create every table on DATABASE_URL."""
        from payroll_lifecycle.database import create_schema, dispose_db

        async def _init() -> None:
            try:
                await create_schema()
            finally:
                await dispose_db()

        asyncio.run(_init())
        print("Database schema created")
        return 0

    def _cmd_issue_token(self, args: argparse.Namespace) -> int:
        """Print a signed access token."""
        from payroll_lifecycle.security import create_access_token

        expires = timedelta(minutes=args.expires_minutes) if args.expires_minutes else None
        token = create_access_token(
            {"sub": str(args.user_id), "role": args.role},
            expires_delta=expires,
        )
        print(token)
        return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
