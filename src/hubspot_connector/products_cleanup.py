"""Flatten the paginated Impress product printout into a plain products sheet.

Impress exports products as a printable report: every page holds up to 59
products (SKU in column A, name in column B) and a new page starts every 63
rows, the first one at row 5. This module rewrites such a workbook as a flat
``products`` worksheet that the parser can read, keeping a backup copy of the
original next to it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List

from openpyxl import load_workbook

from hubspot_connector.excel_reader import read_cell_range, write_sheet

logger = logging.getLogger(__name__)

PRODUCTS_PER_PAGE = 59
PAGE_STRIDE = 63  # rows from the start of one page to the start of the next
FIRST_PAGE_ROW = 5
MAX_PAGES = 500

# Service charges that never appear in the printout but are billed on orders
MIN_CHARGE_PRODUCTS: List[Dict[str, Any]] = [
    {
        "Name": "Less than Minimum Charge - Dye Sub",
        "SKU": "<MIN-DS",
        "Product Type": "Service",
        "Unit Price": 0,
    },
    {
        "Name": "Less than Minimum Charge - Embroidery",
        "SKU": "<MIN-EMB",
        "Product Type": "Service",
        "Unit Price": 0,
    },
    {
        "Name": "Less than Minimum Charge - PIP",
        "SKU": "<MIN-PIP",
        "Product Type": "Service",
        "Unit Price": 0,
    },
    {
        "Name": "Less than Minimum Charge - Screen Print",
        "SKU": "<MIN-SP",
        "Product Type": "Service",
        "Unit Price": 0,
    },
]


def backup_path(workbook_path: Path) -> Path:
    return workbook_path.with_name(
        f"{workbook_path.stem} (auto-backup){workbook_path.suffix}"
    )


def _cell_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value}"


def extract_paginated_products(sheet) -> List[Dict[str, Any]]:
    """Return ``{"SKU", "Name", "Unit Price"}`` rows read page by page."""
    products: List[Dict[str, Any]] = []
    for page in range(MAX_PAGES):
        first_row = page * PAGE_STRIDE + FIRST_PAGE_ROW
        rows = read_cell_range(
            sheet,
            min_row=first_row,
            max_row=first_row + PRODUCTS_PER_PAGE - 1,
            min_col=1,
            max_col=2,
        )
        if rows[0][0] is None:  # No more pages
            break
        for sku, name in rows:
            if not sku:
                break
            products.append(
                {"SKU": _cell_text(sku), "Name": _cell_text(name), "Unit Price": 0}
            )
    return products


def cleanup_products_sheet(workbook_path: Path, sheet_name: str = "products") -> Path:
    """Back up ``workbook_path`` and overwrite it with a flat product list."""
    workbook_path = Path(workbook_path)
    if not workbook_path.exists():
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")

    backup = backup_path(workbook_path)
    shutil.copyfile(workbook_path, backup)
    logger.info("Backed up %s to %s", workbook_path, backup)

    workbook = load_workbook(filename=workbook_path, data_only=True)
    try:
        try:
            sheet = workbook[sheet_name]
        except KeyError as exc:
            raise ValueError(
                f"Worksheet '{sheet_name}' not found in workbook {workbook_path}"
            ) from exc
        extracted = extract_paginated_products(sheet)
    finally:
        workbook.close()

    products = [*MIN_CHARGE_PRODUCTS, *extracted]
    logger.info("Writing %d products to %s", len(products), workbook_path)
    return write_sheet(
        products,
        workbook_path,
        sheet_name,
        headers=("Name", "SKU", "Product Type", "Unit Price"),
    )


__all__ = ["backup_path", "cleanup_products_sheet", "extract_paginated_products"]
