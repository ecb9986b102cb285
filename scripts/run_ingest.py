#!/usr/bin/env python3
"""
Operator CLI for the recovery ingestion engine.

Subcommands:
    probe     Row count, columns and sample rows of an export.  No DB writes.
    ingest    Stream an export into the canonical store, printing progress.
    delete    Remove a file upload with its events and sales summaries.
    variance  Compare computed fees against an expected-fee reference CSV.
    funnel    Lifecycle funnel counts, optionally for some retail weeks.

Usage:
    python3 scripts/run_ingest.py [--db-url URL] [--config PATH] <command> [options]

Examples:
    python3 scripts/run_ingest.py probe "Sales 03.01.25.csv"
    python3 scripts/run_ingest.py ingest "Sales 03.01.25.csv" --batch-size 1000
    python3 scripts/run_ingest.py delete 1b4e28ba-2fa1-11d2-883f-0016d3cca427
    python3 scripts/run_ingest.py variance expected_fees.csv
    python3 scripts/run_ingest.py funnel --week 5 --week 6

DATABASE_URL and RECOVERY_CONFIG_PATH are read when the flags are omitted.
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite:///recovery.db"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recovery ingestion engine: probe, ingest, delete and report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--db-url",
        default=os.environ.get("DATABASE_URL", DB_URL),
        help=f"Database URL (default: $DATABASE_URL or {DB_URL}).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.environ["RECOVERY_CONFIG_PATH"]) if os.environ.get("RECOVERY_CONFIG_PATH") else None,
        help="Rule-set YAML (default: $RECOVERY_CONFIG_PATH or the bundled default).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    probe = sub.add_parser("probe", help="Probe an export without loading it.")
    probe.add_argument("file", type=Path)

    ingest = sub.add_parser("ingest", help="Ingest an export.")
    ingest.add_argument("file", type=Path)
    ingest.add_argument("--batch-size", type=int, default=None, help="Rows per batch.")
    ingest.add_argument("--quiet", action="store_true", help="Do not print progress.")

    delete = sub.add_parser("delete", help="Delete a file upload (units are kept).")
    delete.add_argument("file_upload_id", type=UUID)

    variance = sub.add_parser("variance", help="Fee variance against an expected-fee CSV.")
    variance.add_argument("reference", type=Path)

    funnel = sub.add_parser("funnel", help="Lifecycle funnel.")
    funnel.add_argument("--week", type=int, action="append", default=[], help="Retail week (repeatable).")
    funnel.add_argument("--year", type=int, default=None, help="Fiscal year.")

    return parser.parse_args(argv)


def _print_progress(rows: int, percent: float) -> None:
    print(f"  {rows:>10,} rows  {percent:6.2f}%")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from recovery_config import get_active_config
    from recovery_ingestion.services import IngestionService
    from recovery_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
        session_scope,
    )
    from recovery_kernel.domain.clock import SystemClock
    from recovery_kernel.exceptions import RecoveryKernelError
    from recovery_kernel.selectors import UnitFilter
    from recovery_services import ExpectedFeeReference, MetricsAggregator

    try:
        config = get_active_config(args.config)
    except (OSError, RecoveryKernelError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    if args.command == "ingest" and args.batch_size:
        config = replace(config, ingestion=replace(config.ingestion, batch_size=args.batch_size))

    try:
        init_engine_from_url(args.db_url)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    session_factory = get_session_factory()
    service = IngestionService(session_factory, clock=SystemClock(), config=config)

    if args.command == "probe":
        try:
            probe = service.probe(args.file)
        except RecoveryKernelError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(f"Rows: {probe.row_count}")
        print(f"Lines: {probe.line_count}")
        print(f"Columns: {list(probe.columns)}")
        print("Sample (first 3):")
        for i, row in enumerate(probe.sample_rows[:3], 1):
            print(f"  {i}: {row}")
        return 0

    if args.command == "ingest":
        print(f"Ingesting {args.file} (batch size {config.ingestion.batch_size})...")
        result = service.ingest_path_sync(
            args.file, on_progress=None if args.quiet else _print_progress
        )
        print(f"  Status: {result.status.value}")
        print(f"  File upload: {result.file_upload_id}")
        print(f"  Type: {result.file_type.value}, business date: {result.business_date}")
        print(
            f"  Rows: {result.rows_processed}, skipped: {result.rows_skipped}, "
            f"defaulted: {result.rows_defaulted}"
        )
        print(f"  Batches committed: {result.batches_committed}, events: {result.events_appended}")
        for warning in result.warnings[:10]:
            print(f"  Row {warning.row_number} {warning.column}: {warning.message}")
        if result.error_code:
            print(f"ERROR: [{result.error_code}] {result.error_message}", file=sys.stderr)
            return 1
        return 0

    if args.command == "delete":
        try:
            deleted = service.delete_file_upload(args.file_upload_id)
        except RecoveryKernelError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(f"Deleted {deleted.events_deleted} events and {deleted.metrics_deleted} sales summaries.")
        return 0

    with session_scope() as session:
        aggregator = MetricsAggregator(session, config)

        if args.command == "variance":
            try:
                reference = ExpectedFeeReference.from_path(args.reference)
            except RecoveryKernelError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 1
            report = aggregator.variance_report(reference)
            print(f"Units compared: {report.unit_count}")
            for status, count in report.by_status.items():
                print(f"  {status.value:<18} {count:>8}")
            return 0

        filters = UnitFilter(fiscal_weeks=tuple(args.week), fiscal_year=args.year)
        for stage in aggregator.funnel(filters):
            print(f"  {stage.stage.value:<10} {stage.count:>8}  ({stage.percentage}%)")
        return 0


if __name__ == "__main__":
    sys.exit(main())
