"""Collect parse-time and sync-time failures and write them out for the operator."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from hubspot_connector.excel_reader import write_sheet
from hubspot_connector.model import AppError, DataError, ErrorRow

logger = logging.getLogger(__name__)

REPORT_SHEET_NAME = "Errors"
REPORT_COLUMNS = (
    "errorType",
    "dataType",
    "message",
    "rowNumber (approx)",
    "rowIdentifier",
)


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_row(error: DataError | Exception) -> ErrorRow:
    """Flatten one failure into a report row."""
    match error:
        case DataError():
            return ErrorRow(
                error_type="Data",
                data_type=error.type,
                message=error.message,
                row_identifier=error.row_identifier,
                row_number=error.row_number,
            )
        case AppError():
            return ErrorRow(error_type=f"App ({error.kind})", message=error.message)
        case _:
            return ErrorRow(error_type="Other", message=str(error))


def gather_data_errors(*datasets: Iterable[Any]) -> List[DataError]:
    """Pick the data errors out of parsed datasets, keeping their order."""
    return [item for dataset in datasets for item in dataset if isinstance(item, DataError)]


class ErrorCollector:
    """Accumulates every failure of a run, data errors and app errors alike."""

    def __init__(self) -> None:
        self.errors: List[DataError | Exception] = []

    def add(self, error: DataError | Exception) -> None:
        self.errors.append(error)
        if isinstance(error, DataError):
            logger.warning("Data error: %s", error)
        else:
            logger.error("Sync error: %s", error)

    def extend(self, errors: Iterable[DataError | Exception]) -> None:
        for error in errors:
            self.add(error)

    def rows(self) -> List[ErrorRow]:
        return [error_row(error) for error in self.errors]

    def __len__(self) -> int:
        return len(self.errors)


def _serialise_row(row: ErrorRow) -> Dict[str, Any]:
    return {
        "errorType": row.error_type,
        "dataType": row.data_type,
        "message": row.message,
        "rowNumber (approx)": row.row_number,
        "rowIdentifier": row.row_identifier,
    }


def build_report_payload(rows: Sequence[ErrorRow]) -> Dict[str, Any]:
    return {
        "status": "success",
        "timestamp": iso_timestamp(),
        "error_count": len(rows),
        "errors": [_serialise_row(row) for row in rows],
    }


def write_error_report(rows: Sequence[ErrorRow], output_path: Path) -> Path:
    """Write the report as a worksheet, or as JSON when ``output_path`` ends in ``.json``."""
    output_path = Path(output_path)
    if output_path.suffix.lower() == ".json":
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as f:
            json.dump(build_report_payload(rows), f, indent=2)
        return output_path

    return write_sheet(
        (_serialise_row(row) for row in rows),
        output_path,
        REPORT_SHEET_NAME,
        headers=REPORT_COLUMNS,
    )


__all__ = [
    "ErrorCollector",
    "build_report_payload",
    "error_row",
    "gather_data_errors",
    "iso_timestamp",
    "write_error_report",
]
