from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from typing import Any

from .columns import column_to_index, split_reference
from .reader import RawCell

"""Cell grid extraction: raw cell stream -> sparse row of strings.

Rows are kept as ``dict[int, str]`` keyed by zero-based column index, so a
workbook with data far to the right never loses columns and short rows cost
nothing. Typed values become the text a person would read in the cell;
blank cells and spreadsheet error values collapse to the ``ABSENT`` sentinel.
"""

__all__ = [
    "ABSENT",
    "SparseRow",
    "cell_text",
    "resolve_cell_value",
    "extract_row",
    "cell_at",
    "is_blank_row",
    "row_text",
    "densify",
]

ABSENT = "N/A"

SparseRow = dict[int, str]


def cell_text(value: Any) -> str:
    """Render a typed cell value as text ("" for None).

    Whole floats drop their ".0"; midnight datetimes render as ISO dates so
    the date decoder sees them like typed text.

    >>> cell_text(45335.0), cell_text(True), cell_text(datetime(2025, 3, 31))
    ('45335', 'TRUE', '2025-03-31')
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def resolve_cell_value(cell: RawCell) -> str:
    """Return the display text of a raw cell, or ABSENT when it has none."""
    if cell.value is None or cell.cell_type == "e":
        return ABSENT
    text = cell_text(cell.value).strip()
    return text if text else ABSENT


def extract_row(cells: Iterable[RawCell]) -> SparseRow:
    """Build a sparse row from one row's raw cells."""
    row: SparseRow = {}
    for cell in cells:
        letters, _ = split_reference(cell.reference)
        row[column_to_index(letters)] = resolve_cell_value(cell)
    return row


def cell_at(row: Mapping[int, str], index: int | None) -> str:
    if index is None or index < 0:
        return ABSENT
    return row.get(index, ABSENT)


def is_blank_row(row: Mapping[int, str]) -> bool:
    return all(v == ABSENT for v in row.values())


def row_text(row: Mapping[int, str]) -> str:
    """Cells joined left to right with single spaces."""
    return " ".join(row[i] for i in sorted(row))


def densify(row: Mapping[int, str], width: int | None = None) -> list[str]:
    """Dense list sized by the highest referenced column (or ``width``)."""
    size = (max(row) + 1) if row else 0
    if width is not None:
        size = max(size, width)
    return [row.get(i, ABSENT) for i in range(size)]
