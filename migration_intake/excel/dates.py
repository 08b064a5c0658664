from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from .grid import ABSENT

"""Date decoding for workbook cells.

Cells arrive either as text typed by a person ("13-02-2024") or as the
spreadsheet's stored serial number ("45335"). Textual formats are tried
first, in order; numeric strings then fall back to serial-day decoding from
the 1899-12-30 epoch, which absorbs the spreadsheet's 1900 leap-year bug for
every date after February 1900.
"""

__all__ = [
    "DEFAULT_DATE_FORMATS",
    "SERIAL_EPOCH",
    "decode_date",
    "decode_serial",
]

# Day-first formats precede ISO ones; operator workbooks are day-first.
DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

SERIAL_EPOCH = date(1899, 12, 30)


def decode_serial(text: str) -> date | None:
    """Decode a serial day number; fractional (time) part is truncated."""
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    try:
        return SERIAL_EPOCH + timedelta(days=int(number))
    except OverflowError:
        return None


def decode_date(raw: str | None, formats: Sequence[str] = DEFAULT_DATE_FORMATS) -> date | None:
    """Decode a cell string into a date.

    Returns None when the cell is absent or matches neither a textual format
    nor a serial number.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text or text == ABSENT:
        return None
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return decode_serial(text)
