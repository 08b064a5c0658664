from __future__ import annotations

import re

"""Spreadsheet column label <-> zero-based index conversion.

Column labels are bijective base-26 numerals: A..Z, AA..AZ, BA.. and so on.
"""

__all__ = [
    "column_to_index",
    "index_to_column",
    "split_reference",
]

_REFERENCE_RE = re.compile(r"^\s*([A-Za-z]+)\s*(\d*)\s*$")


def column_to_index(label: str) -> int:
    """Convert a column label ("A", "AB") to a zero-based index.

    Raises:
        ValueError: label is empty or contains non-letter characters
    """
    text = label.strip().upper()
    if not text or not text.isascii() or not text.isalpha():
        raise ValueError(f"invalid column label: {label!r}")
    total = 0
    for ch in text:
        total = total * 26 + (ord(ch) - ord("A") + 1)
    return total - 1


def index_to_column(index: int) -> str:
    """Convert a zero-based index to its column label (0 -> "A", 26 -> "AA")."""
    if index < 0:
        raise ValueError(f"column index must be non-negative: {index}")
    letters: list[str] = []
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(ord("A") + rem))
    return "".join(reversed(letters))


def split_reference(reference: str) -> tuple[str, int | None]:
    """Split a cell reference such as "AB12" into ("AB", 12).

    The row part is optional; "C" yields ("C", None).
    """
    match = _REFERENCE_RE.match(reference)
    if match is None:
        raise ValueError(f"invalid cell reference: {reference!r}")
    column, row = match.groups()
    return column.upper(), int(row) if row else None
