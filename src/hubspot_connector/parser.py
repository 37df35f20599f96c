"""Turn raw worksheet rows into typed records or row-level data errors."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from hubspot_connector.excel_reader import read_sheet_rows
from hubspot_connector.model import DataError, DataType
from hubspot_connector.schema import (
    Contact,
    Customer,
    LineItem,
    Order,
    Product,
    PurchaseOrder,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

SHEET_NAMES: dict[DataType, str] = {
    "Customer": "customers",
    "Contact": "contacts",
    "Order": "orders",
    "Line Item": "line items",
    "PO": "po",
    "Product": "products",
}

# Best-effort identifiers for the error report, keyed by record type
ROW_IDENTIFIERS: dict[DataType, Callable[[Mapping[str, Any]], str]] = {
    "Customer": lambda row: f"{row.get('Customer Number')}",
    "Contact": lambda row: f"Contact for customer number {row.get('Customer Number')}",
    "Order": lambda row: f"{row.get('Sales Order#')}",
    "Line Item": lambda row: (
        f"Line item for order {row.get('Sales Order#')} and SKU {row.get('SKU#')}"
    ),
    "PO": lambda row: f"PO for order {row.get('Sales Order#')}",
    "Product": lambda row: f"{row.get('Name')}",
}

MODELS: dict[DataType, type[BaseModel]] = {
    "Customer": Customer,
    "Contact": Contact,
    "Order": Order,
    "Line Item": LineItem,
    "PO": PurchaseOrder,
    "Product": Product,
}


def _bad_fields(error: ValidationError) -> str:
    # loc[0] is the column header; deeper parts name union members
    fields = [str(issue["loc"][0]) for issue in error.errors() if issue["loc"]]
    return ", ".join(dict.fromkeys(fields))


def parse_rows(
    data_type: DataType,
    rows: Iterable[Mapping[str, Any]],
    parse_fn: Callable[[Mapping[str, Any]], RecordT] | None = None,
    identify: Callable[[Mapping[str, Any]], str] | None = None,
) -> list[RecordT | DataError]:
    """Parse every row, returning one record or :class:`DataError` per row, in order."""

    if parse_fn is None:
        parse_fn = MODELS[data_type].model_validate
    if identify is None:
        identify = ROW_IDENTIFIERS.get(data_type, lambda row: "UNKNOWN")

    parsed: list[RecordT | DataError] = []
    for index, row in enumerate(rows):
        try:
            row_identifier = identify(row)
        except Exception:  # identifier is best-effort only
            row_identifier = "UNKNOWN"

        try:
            parsed.append(parse_fn(row))
        except ValidationError as exc:
            message = f"Encountered issues with the following fields: {_bad_fields(exc)}"
            parsed.append(DataError(data_type, row_identifier, index, message))
        except Exception as exc:
            logger.debug("Unexpected failure parsing %s row %d: %s", data_type, index, exc)
            parsed.append(
                DataError(data_type, row_identifier, index, "Unknown error while parsing")
            )

    failures = sum(isinstance(item, DataError) for item in parsed)
    logger.info("Parsed %d %s rows (%d with errors)", len(parsed), data_type, failures)
    return parsed


def workbook_path(data_dir: Path, data_type: DataType) -> Path:
    """Return ``<data_dir>/<sheet name>.xlsx`` for a record type."""
    return Path(data_dir) / f"{SHEET_NAMES[data_type]}.xlsx"


def load_records(data_dir: Path, data_type: DataType) -> list[Any]:
    """Read and parse the worksheet of ``data_type`` from its workbook."""
    rows = read_sheet_rows(workbook_path(data_dir, data_type), SHEET_NAMES[data_type])
    return parse_rows(data_type, rows)


__all__ = ["SHEET_NAMES", "load_records", "parse_rows", "workbook_path"]
