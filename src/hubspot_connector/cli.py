"""Command-line interface for the Impress to HubSpot migration."""

from __future__ import annotations

import argparse
import logging
import sys
from zipfile import BadZipFile

from openpyxl.utils.exceptions import InvalidFileException

from .config import load_settings
from .model import AppError
from .parser import workbook_path
from .products_cleanup import cleanup_products_sheet
from .progress import ConsoleProgress
from .runner import run_sync


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Synchronise Impress spreadsheet exports into HubSpot"
    )
    parser.add_argument(
        "--data-dir",
        help="Directory holding one workbook per record type (default: $DATA_DIR)",
    )
    parser.add_argument("--output", help="Error report path (.xlsx or .json)")
    parser.add_argument(
        "--cleanup-products",
        action="store_true",
        help="Flatten the paginated products export before syncing",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(data_dir=args.data_dir, report_path=args.output)
    except AppError as exc:
        print(f"{exc.kind} error: {exc}", file=sys.stderr)
        return 1

    if args.cleanup_products:
        try:
            cleanup_products_sheet(workbook_path(settings.data_dir, "Product"))
        except (OSError, ValueError, BadZipFile, InvalidFileException) as exc:
            print(f"Products cleanup failed: {exc}", file=sys.stderr)
            return 1

    with ConsoleProgress() as progress:
        summary = run_sync(settings, progress=progress)
    print(
        f"Sync finished with {summary.error_count} errors. "
        f"Report written to {summary.report_path}"
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
