"""Settlement Command Line Interface.

Provides operational tools for:
- Period draft generation
- Marking records paid (with ledger posting)
- Schema creation for development databases

Usage:
    python -m payroll_settlement.cli generate --period 2024-03
    python -m payroll_settlement.cli generate --period 2024-03 --facility-id X
    python -m payroll_settlement.cli mark-paid ID [ID ...] --payment-date 2024-03-31
    python -m payroll_settlement.cli init-db
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.config import get_settings
from payroll_settlement.database import create_schema, dispose_db, get_session
from payroll_settlement.errors import CompensationError
from payroll_settlement.services.compensation_service import CompensationService
from payroll_settlement.services.outcomes import BulkResult, GenerationResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


class SettlementCli:
    """Settlement Command Line Interface."""

    def __init__(self, session_scope: SessionScope = get_session) -> None:
        self.session_scope = session_scope
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_settlement.cli",
            description="Payroll settlement operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        generate = subparsers.add_parser(
            "generate",
            help="Generate draft records for every active employee",
        )
        generate.add_argument(
            "--period",
            required=True,
            help="Period to generate (YYYY-MM)",
        )
        generate.add_argument(
            "--facility-id",
            type=parse_uuid,
            help="Restrict generation to one facility",
        )

        mark_paid = subparsers.add_parser(
            "mark-paid",
            help="Mark records paid and post their ledger entries",
        )
        mark_paid.add_argument(
            "record_ids",
            nargs="+",
            type=parse_uuid,
            help="Compensation record IDs",
        )
        mark_paid.add_argument(
            "--payment-date",
            type=parse_date,
            help="Payment date (ISO format, default: today)",
        )

        subparsers.add_parser(
            "init-db",
            help="Create database tables (development only)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        logging.basicConfig(
            level=get_settings().log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return asyncio.run(self._run_and_dispose(args))

    async def _run_and_dispose(self, args: list[str] | None) -> int:
        try:
            return await self.run_async(args)
        finally:
            await dispose_db()

    async def run_async(self, args: list[str] | None = None) -> int:
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return EXIT_ERROR

        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "generate": self._cmd_generate,
            "mark-paid": self._cmd_mark_paid,
            "init-db": self._cmd_init_db,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return EXIT_ERROR

        try:
            return await handler(parsed)
        except (CompensationError, ValueError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_ERROR

    async def _cmd_generate(self, args: argparse.Namespace) -> int:
        """Generate drafts for a period."""
        async with self.session_scope() as session:
            service = CompensationService(session)
            result = await service.generate_period(args.period, args.facility_id)

        print_generation(result)
        return EXIT_OK if result.all_succeeded else EXIT_PARTIAL

    async def _cmd_mark_paid(self, args: argparse.Namespace) -> int:
        """Mark records paid."""
        async with self.session_scope() as session:
            service = CompensationService(session)
            result = await service.bulk_mark_paid(args.record_ids, args.payment_date)

        print_bulk(result)
        return EXIT_OK if result.all_succeeded else EXIT_PARTIAL

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        await create_schema()
        print("Schema created")
        return EXIT_OK


def print_generation(result: GenerationResult) -> None:
    print(f"Generation for {result.period}")
    print("=" * 40)
    print(f"  created: {len(result.created)}")
    print(f"  skipped: {len(result.skipped)}")
    print(f"  failed:  {len(result.failures)}")
    for failure in result.failures:
        print(f"    - employee {failure.employee_id}: [{failure.error.code}] {failure.error}")


def print_bulk(result: BulkResult) -> None:
    print("Mark paid")
    print("=" * 40)
    for outcome in result.outcomes:
        if outcome.ok:
            print(f"  {outcome.record_id}: OK")
        else:
            print(f"  {outcome.record_id}: FAIL [{outcome.error.code}] {outcome.error}")
    print(f"\n{len(result.succeeded)} succeeded, {len(result.failed)} failed")


def main() -> int:
    """CLI entry point."""
    cli = SettlementCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
