#!/usr/bin/env python3
"""Command-line interface for reconciliation tools.

Usage:
    statements-recon order --input order.json
    statements-recon sync --input customers.json --no-db-save --format text
    python -m statements_sdk.reconciliation.cli sync --input customers.json --limit 10
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from ..database import (
    Base,
    create_async_engine,
    get_async_session_factory,
    get_database_url,
)
from .models import StatementSyncReport, SyncStatus
from .report import comparison_payload
from .service import ReconciliationService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_json(path: str) -> Dict[str, Any]:
    """Read a JSON object from a file, or stdin when path is '-'.

    Raises:
        ValueError: If the content is not a JSON object.
    """
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path) as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def write_output(output: str, output_file: Optional[str]) -> None:
    if output_file:
        with open(output_file, 'w') as f:
            f.write(output)
        logger.info(f"Report written to {output_file}")
    else:
        print(output)


def run_order_comparison(input_file: str, output_file: Optional[str] = None) -> int:
    """Compare one order against its accounting invoice.

    The input holds ``maropostData`` and ``xeroData`` as the order endpoint
    receives them.

    Returns:
        Exit code: 0 when balances agree, 1 on mismatch or invalid input.
    """
    try:
        data = load_json(input_file)
        service = ReconciliationService()
        result = asyncio.run(service.reconcile_order_payload(
            data.get("maropostData"),
            data.get("xeroData"),
            save=False,
        ))
    except (OSError, ValueError) as e:
        # ReconciliationError is a ValueError
        logger.error(str(e))
        return 1

    write_output(json.dumps(comparison_payload(result), indent=2), output_file)
    return 1 if result.balance_mismatch else 0


async def run_sync_async(
    statement_data: Dict[str, Any],
    db_save: bool = True,
    limit: Optional[int] = None,
    output_file: Optional[str] = None,
    output_format: str = "json",
    include_details: bool = True,
) -> int:
    """Run a statement balance sync asynchronously.

    Without ``db_save`` no engine is created, so a dry run never touches
    the configured database.

    Args:
        statement_data: Statement-check response with a customers list.
        db_save: Persist the computed balances.
        limit: Only process the first N customers.
        output_file: Optional output file path.
        output_format: Output format ('json', 'csv', 'text').
        include_details: Include per-customer records in JSON output.

    Returns:
        Exit code (0 for success, 1 for discrepancies or skipped
        customers, 2 for failure).
    """
    if not db_save:
        service = ReconciliationService()
        report = await service.sync_statement_balances(
            statement_data, db_save=False, limit=limit
        )
        return finish_sync(service, report, output_file, output_format, include_details)

    engine = create_async_engine(database_url=get_database_url())

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        session_factory = get_async_session_factory(engine)
        async with session_factory() as session:
            service = ReconciliationService(session)
            report = await service.sync_statement_balances(
                statement_data, db_save=True, limit=limit
            )
            if report.status == SyncStatus.COMPLETED:
                await session.commit()
            else:
                await session.rollback()

            return finish_sync(service, report, output_file, output_format, include_details)

    finally:
        await engine.dispose()


def finish_sync(
    service: ReconciliationService,
    report: StatementSyncReport,
    output_file: Optional[str],
    output_format: str,
    include_details: bool,
) -> int:
    """Write the sync report and map its outcome to an exit code."""
    write_output(
        service.generate_report(
            report=report,
            format=output_format,
            include_details=include_details,
        ),
        output_file,
    )

    if report.status != SyncStatus.COMPLETED:
        logger.error(f"Statement sync failed: {report.error_message}")
        return 2
    if report.failed_customers:
        logger.warning(
            f"Statement sync skipped {len(report.failed_customers)} customers "
            f"with unreadable orders: {', '.join(report.failed_customers)}"
        )
        return 1
    if report.discrepant_orders:
        logger.warning(
            f"Statement sync completed with {len(report.discrepant_orders)} "
            f"outstanding discrepancies"
        )
        return 1
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="statements-recon",
        description="Balance reconciliation tools for orders, invoices and statements.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    order_parser = subparsers.add_parser(
        "order",
        help="Compare one order with its accounting invoice",
    )
    order_parser.add_argument(
        "--input", "-i",
        required=True,
        help="JSON file with maropostData and xeroData ('-' for stdin)",
    )
    order_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )

    sync_parser = subparsers.add_parser(
        "sync",
        help="Synchronize customer balances into statement_of_accounts",
    )
    sync_parser.add_argument(
        "--input", "-i",
        required=True,
        help="JSON file with the statement-check response ('-' for stdin)",
    )
    sync_parser.add_argument(
        "--no-db-save",
        action="store_true",
        help="Compute balances without writing to the database",
    )
    sync_parser.add_argument(
        "--limit", "-n",
        type=int,
        help="Only process the first N customers",
    )
    sync_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    sync_parser.add_argument(
        "--format", "-f",
        choices=["json", "csv", "text"],
        default="json",
        help="Output format (default: json)",
    )
    sync_parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only include summary statistics, not per-customer records",
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == "order":
        return run_order_comparison(parsed_args.input, parsed_args.output)

    if parsed_args.command == "sync":
        if parsed_args.limit is not None and parsed_args.limit < 1:
            logger.error("--limit must be a positive integer")
            return 1
        try:
            statement_data = load_json(parsed_args.input)
        except (OSError, ValueError) as e:
            logger.error(str(e))
            return 1

        return asyncio.run(run_sync_async(
            statement_data,
            db_save=not parsed_args.no_db_save,
            limit=parsed_args.limit,
            output_file=parsed_args.output,
            output_format=parsed_args.format,
            include_details=not parsed_args.summary_only,
        ))

    return 0


if __name__ == "__main__":
    sys.exit(main())
