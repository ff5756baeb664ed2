#!/usr/bin/env python3
"""Command-line interface for tinkoff-sync."""

import argparse
import sys
from pathlib import Path
from typing import Any

import requests

from tinkoff_sync.config import (
    create_default_config,
    get_config_path,
    get_institution,
    get_ledger_settings,
    get_reports_dir,
    load_config,
    save_json_config,
)
from tinkoff_sync.directory import ConfigDirectory
from tinkoff_sync.exceptions import TinkoffSyncError
from tinkoff_sync.ledger import DryRunLedger, Ledger, LedgerClient
from tinkoff_sync.logging_setup import configure_logging
from tinkoff_sync.reconciler import ProcessingResult, ReportReconciler
from tinkoff_sync.store import ReportStore, report_id_of


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tinkoff-sync",
        description="Forward Tinkoff statement exports (CSV/OFX) to the bookkeeping ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tinkoff-sync --init-config
  tinkoff-sync --import ~/Downloads/operations.csv
  tinkoff-sync --list --all
  tinkoff-sync --dry-run -v
  tinkoff-sync                      # process every new report (run from cron)
  tinkoff-sync --report statement.ofx
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json file",
    )
    parser.add_argument(
        "--reports-dir",
        type=Path,
        help="Directory with report files (overrides config)",
    )
    parser.add_argument(
        "--ledger-url",
        help="Ledger API base URL (or configure in config.json)",
    )
    parser.add_argument(
        "--ledger-api-key",
        help="Ledger API key (or configure in config.json)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List unprocessed reports and exit",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="With --list, include processed reports",
    )
    parser.add_argument(
        "--import",
        dest="import_files",
        nargs="+",
        type=Path,
        metavar="FILE",
        help="Copy report files into the reports directory",
    )
    parser.add_argument(
        "--report",
        help="Process only the report with this file name",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log ledger calls instead of sending them and keep reports unprocessed",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file to the XDG config location",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    return parser


def build_ledger(config: dict[str, Any] | None, args: argparse.Namespace) -> Ledger | None:
    """Create the ledger client from config and arguments."""
    if args.dry_run:
        return DryRunLedger()

    url, api_key, timeout = get_ledger_settings(config, args.ledger_url, args.ledger_api_key)
    if not url or not api_key:
        print("Error: ledger URL and API key required. Use --ledger-url/--ledger-api-key "
              "or configure in config.json", file=sys.stderr)
        return None

    if timeout is None:
        return LedgerClient(url, api_key)
    return LedgerClient(url, api_key, timeout=timeout)


def print_results(results: list[ProcessingResult]) -> None:
    """Print a summary of processed reports."""
    for result in results:
        if result.ok:
            print(f"  {result.report_id.name}: {result.settlements} settlements, "
                  f"{result.holds} holds", file=sys.stderr)
        else:
            print(f"  {result.report_id.name}: FAILED ({result.failure.value}) "  # type: ignore[union-attr]
                  f"{result.detail}", file=sys.stderr)

    failed = sum(1 for r in results if not r.ok)
    print(f"Processed {len(results) - failed} of {len(results)} reports", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    configure_logging("DEBUG" if args.verbose else None)

    if args.init_config:
        path = save_json_config(create_default_config(), get_config_path())
        print(f"Configuration saved to: {path}")
        return 0

    config = load_config(args.config)

    reports_dir = get_reports_dir(config, args.reports_dir)
    if reports_dir is None:
        print("Error: reports directory not configured. Use --reports-dir or set "
              "reports_dir in config.json", file=sys.stderr)
        return 1

    try:
        store = ReportStore(reports_dir, read_only=args.dry_run)
    except TinkoffSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.import_files:
        status = 0
        for path in args.import_files:
            try:
                with open(path, "rb") as f:
                    report_id = store.save(path.name, f)
                print(f"Imported {report_id.name}", file=sys.stderr)
            except (OSError, TinkoffSyncError) as e:
                print(f"Error: {path}: {e}", file=sys.stderr)
                status = 1
        return status

    if args.list:
        reports = store.list_all() if args.all else store.list_unprocessed()
        for report_id in reports:
            print(f"{report_id.name}\t{report_id.created.isoformat()}")
        return 0

    ledger = build_ledger(config, args)
    if ledger is None:
        return 1

    reconciler = ReportReconciler(
        store,
        ledger,
        ConfigDirectory.from_config(config),
        institution=get_institution(config),
    )

    try:
        if args.report:
            path = reports_dir / args.report
            if not path.is_file():
                print(f"Error: {args.report} not found in {reports_dir}", file=sys.stderr)
                return 1
            results = [reconciler.process_report(report_id_of(path))]
        else:
            results = reconciler.process_new_reports()
    except (requests.RequestException, TinkoffSyncError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_results(results)
    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
