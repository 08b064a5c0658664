from __future__ import annotations

from dataclasses import dataclass, field

from ..excel.grid import ABSENT
from ..schemas.base import ImportSchema
from .decoder import DecodedRow

"""Row validation against a schema.

Errors make a row invalid. Notes (values outside a known vocabulary) keep the
row valid but flag it for operator review.
"""

__all__ = [
    "ValidationResult",
    "is_missing",
    "validate",
]


@dataclass(frozen=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        return not text or text == ABSENT
    return False


def validate(decoded: DecodedRow, schema: ImportSchema, strict_dates: bool = False) -> ValidationResult:
    """Validate a decoded row.

    Args:
        decoded: row produced by decode_row
        schema: schema the row was decoded with
        strict_dates: treat undecodable optional date text as an error

    Returns:
        ValidationResult with ordered error messages and review notes
    """
    errors: list[str] = []
    notes: list[str] = []
    record = decoded.record
    for spec in schema.fields:
        value = getattr(record, spec.name)
        if spec.is_date:
            raw = decoded.raw_dates.get(spec.name, ABSENT)
            undecodable = value is None and not is_missing(raw)
            if spec.required and value is None:
                if undecodable:
                    errors.append(f"{spec.label} '{raw}' is not a valid date")
                else:
                    errors.append(f"{spec.label} is required")
            elif undecodable and strict_dates:
                errors.append(f"{spec.label} '{raw}' is not a valid date")
            continue
        if is_missing(value):
            if spec.required:
                errors.append(f"{spec.label} is required")
            continue
        if not spec.is_known_value(value):
            notes.append(f"unrecognised {spec.label} '{value}'")
    return ValidationResult(errors=errors, notes=notes)
