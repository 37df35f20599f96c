"""Excel access for the Impress exports.

This module reads worksheets from the exported workbooks using ``openpyxl``
and converts each data row into a ``{header: value}`` dictionary. Blank cells
are left out of the dictionary and blank rows are skipped entirely, so the
position of a row in the returned list is only an approximation of its
position in the worksheet.
"""

from __future__ import annotations

from pathlib import Path  # Filesystem path management
from typing import Any, Iterable, List, Mapping, Sequence

from openpyxl import Workbook, load_workbook  # Excel file loader/writer
from openpyxl.worksheet.worksheet import Worksheet

Row = dict[str, Any]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_sheet_rows(workbook_path: Path, sheet_name: str) -> List[Row]:
    """Return the data rows of ``sheet_name`` keyed by the header row.

    Raises :class:`FileNotFoundError` if the workbook cannot be located and
    :class:`ValueError` if the worksheet is missing.
    """

    workbook_path = Path(workbook_path)  # Ensure we have a Path instance
    if not workbook_path.exists():
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")

    # Read-only mode with cached values rather than formulas
    workbook = load_workbook(filename=workbook_path, read_only=True, data_only=True)
    try:
        try:
            sheet = workbook[sheet_name]
        except KeyError as exc:
            raise ValueError(
                f"Worksheet '{sheet_name}' not found in workbook {workbook_path}"
            ) from exc

        rows = sheet.iter_rows(values_only=True)
        headers_row = next(rows, None)  # First row holds the column headers
        if headers_row is None:  # Empty sheet
            return []

        headers = [
            str(header).strip() if header is not None else "" for header in headers_row
        ]

        records: List[Row] = []
        for row in rows:
            record = {
                header: value
                for header, value in zip(headers, row)
                if header and not _is_blank(value)
            }
            if record:  # Skip rows with no values at all
                records.append(record)
    finally:
        workbook.close()  # Always close the workbook handle

    return records


def read_cell_range(
    sheet: Worksheet,
    *,
    min_row: int,
    max_row: int,
    min_col: int,
    max_col: int,
) -> List[List[Any]]:
    """Return the raw cell values in a one-indexed, inclusive range.

    ``rows[13][2]`` is the value at column ``min_col + 2``, row ``min_row + 13``.
    Rows past the end of the sheet come back filled with ``None``.
    """
    width = max_col - min_col + 1
    values = [
        list(row) + [None] * (width - len(row))
        for row in sheet.iter_rows(
            min_row=min_row,
            max_row=max_row,
            min_col=min_col,
            max_col=max_col,
            values_only=True,
        )
    ]
    while len(values) < max_row - min_row + 1:
        values.append([None] * width)
    return values


def write_sheet(
    rows: Iterable[Mapping[str, Any]],
    workbook_path: Path,
    sheet_name: str = "Sheet1",
    headers: Sequence[str] | None = None,
) -> Path:
    """Write ``rows`` as a single worksheet, one column per distinct key.

    ``headers`` fixes the column order; by default columns appear in the order
    their keys are first seen.
    """
    rows = list(rows)
    headers = list(headers or [])
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    if headers:
        sheet.append(headers)
    for row in rows:
        sheet.append([row.get(header) for header in headers])

    workbook_path = Path(workbook_path)
    workbook_path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(workbook_path)
    return workbook_path


__all__ = ["read_cell_range", "read_sheet_rows", "write_sheet"]
