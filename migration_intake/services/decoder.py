from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..excel.dates import DEFAULT_DATE_FORMATS, decode_date
from ..excel.grid import ABSENT, cell_at
from ..schemas.base import ImportSchema

"""Row decoder: sparse row + column map -> typed domain record."""

__all__ = [
    "ImportStamp",
    "DecodedRow",
    "decode_row",
]


@dataclass(frozen=True)
class ImportStamp:
    """Per-run provenance stamped onto every record."""
    import_date: datetime  # timezone-aware UTC
    import_set: str  # "<Prefix>_Import_YYYYMMDD_HHMMSS"

    @classmethod
    def for_schema(cls, schema: ImportSchema, when: datetime) -> ImportStamp:
        return cls(import_date=when, import_set=schema.import_set_for(when.strftime("%Y%m%d_%H%M%S")))


@dataclass(frozen=True)
class DecodedRow:
    row_number: int  # worksheet row number
    record: Any  # instance of schema.record_type
    raw_dates: dict[str, str] = field(default_factory=dict)  # date field -> cell text before decoding


def decode_row(
    row: Mapping[int, str],
    row_number: int,
    column_map: Mapping[str, int],
    schema: ImportSchema,
    stamp: ImportStamp,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> DecodedRow:
    """Build the schema's record from one data row.

    Unmapped or out-of-range columns read as the absent sentinel; date fields
    are decoded and their raw text kept for the validator.
    """
    values: dict[str, Any] = {}
    raw_dates: dict[str, str] = {}
    for spec in schema.fields:
        text = cell_at(row, column_map.get(spec.name))
        if spec.is_date:
            raw_dates[spec.name] = text
            values[spec.name] = decode_date(text, date_formats) if text != ABSENT else None
        else:
            values[spec.name] = text
    record = schema.record_type(**values, import_date=stamp.import_date, import_set=stamp.import_set)
    return DecodedRow(row_number=row_number, record=record, raw_dates=raw_dates)
