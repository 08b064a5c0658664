from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..schemas.base import ImportSchema, normalize_header
from .grid import ABSENT, SparseRow, row_text
from .reader import ImportFatalError

"""Boundary & header locator.

Operator workbooks carry free-form notes above the data. The data region
starts below a sentinel row ("===START DATA BELOW===" in any spacing/case);
the first row after it naming the schema's primary field is the header row.
"""

__all__ = [
    "StructureError",
    "StructureLocation",
    "START_MARKER",
    "contains_start_marker",
    "find_start_marker",
    "find_header_row",
    "build_column_map",
    "locate_structure",
]

logger = logging.getLogger(__name__)

# Folded form (case-folded, whitespace removed); "=" decorations are optional.
START_MARKER = "startdatabelow"

_WHITESPACE_RE = re.compile(r"\s+")


class StructureError(ImportFatalError):
    """Raised when the data-start sentinel or header row cannot be found."""


@dataclass(frozen=True)
class StructureLocation:
    start_index: int  # position of sentinel row in the row list
    header_index: int  # position of header row in the row list
    start_row_number: int  # worksheet row number (1-based)
    header_row_number: int
    column_map: dict[str, int] = field(default_factory=dict)  # canonical field -> column index


def contains_start_marker(row: SparseRow) -> bool:
    text = _WHITESPACE_RE.sub("", row_text(row).casefold())
    return START_MARKER in text


def find_start_marker(rows: Sequence[SparseRow]) -> int | None:
    for i, row in enumerate(rows):
        if contains_start_marker(row):
            return i
    return None


def find_header_row(rows: Sequence[SparseRow], schema: ImportSchema, start: int) -> int | None:
    """First row at or after ``start`` with a cell naming the primary field."""
    wanted = schema.primary_variants
    for i in range(start, len(rows)):
        cells = rows[i]
        for value in cells.values():
            if value != ABSENT and normalize_header(value) in wanted:
                return i
    return None


def build_column_map(header: SparseRow, schema: ImportSchema) -> dict[str, int]:
    """Map canonical field names onto column indexes; leftmost header wins."""
    column_map: dict[str, int] = {}
    for index in sorted(header):
        value = header[index]
        if value == ABSENT:
            continue
        key = schema.canonical_header(value)
        if not key:
            continue
        if key in column_map:
            logger.debug("header %r at column %d shadowed by column %d", value, index, column_map[key])
            continue
        column_map[key] = index
    return column_map


def locate_structure(
    rows: Sequence[SparseRow],
    schema: ImportSchema,
    row_numbers: Sequence[int] | None = None,
) -> StructureLocation:
    """Find sentinel row, header row and column map.

    Parameters
    ----------
    rows : extracted sparse rows, in worksheet order
    schema : ImportSchema
    row_numbers : optional worksheet row numbers parallel to ``rows``;
        defaults to ``index + 1``

    Raises
    ------
    StructureError
        sentinel missing, or no header row after it
    """
    start = find_start_marker(rows)
    if start is None:
        raise StructureError("start marker '===START DATA BELOW===' not found")
    header = find_header_row(rows, schema, start + 1)
    if header is None:
        labels = ", ".join(f"'{v}'" for v in schema.field(schema.primary_field).variants)
        raise StructureError(
            f"header row not found below start marker (expected a column named {labels})"
        )
    numbers = row_numbers if row_numbers is not None else range(1, len(rows) + 1)
    column_map = build_column_map(rows[header], schema)
    logger.debug("structure located start=%d header=%d map=%s", numbers[start], numbers[header], column_map)
    return StructureLocation(
        start_index=start,
        header_index=header,
        start_row_number=numbers[start],
        header_row_number=numbers[header],
        column_map=column_map,
    )

