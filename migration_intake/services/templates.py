from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..excel.grid import ABSENT
from ..schemas import ImportSchema, ImportType, get_schema

"""Import templates and the validation-rule catalogue.

Both are derived from the ImportSchema, so a template's header row always
matches what the locator recognises and the rule texts always match what the
validator enforces.
"""

__all__ = [
    "TEMPLATE_MARKER",
    "RuleSet",
    "template_headers",
    "describe_rules",
    "render_rules",
    "write_template",
]

logger = logging.getLogger(__name__)

TEMPLATE_MARKER = "===START DATA BELOW==="
TEMPLATE_NOTE = "Notes above the marker are ignored. Enter one record per row below the header."

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
REQUIRED_FILL = PatternFill(start_color="C00000", end_color="C00000", fill_type="solid")


@dataclass(frozen=True)
class RuleSet:
    """Operator-facing validation rules for one import type."""
    import_type: ImportType
    title: str
    required_fields: tuple[str, ...]  # template header spellings
    optional_fields: tuple[str, ...]
    rules: tuple[str, ...]


def _header(schema: ImportSchema, name: str) -> str:
    return schema.field(name).variants[0]


def template_headers(schema: ImportSchema) -> list[str]:
    """Canonical header row: the first accepted spelling of every field."""
    return [f.variants[0] for f in schema.fields]


def describe_rules(schema: ImportSchema) -> RuleSet:
    """Build the rule catalogue entry for ``schema``."""
    rules: list[str] = []
    for f in schema.fields:
        if f.required:
            rules.append(f"{f.variants[0]} is required (cannot be empty or '{ABSENT}')")

    if schema.key_fields:
        names = [_header(schema, name) for name in schema.key_fields]
        if len(names) > 1:
            rule = f"Unique combination of {' and '.join(names)} required"
        else:
            rule = f"{names[0]} must be unique"
        if schema.key_fold:
            rule += " (compared ignoring case and spacing)"
        rules.append(rule + "; repeats after the first row are rejected as duplicates")

    for f in schema.fields:
        if f.is_date:
            rules.append(
                f"{f.variants[0]} must be a date (DD-MM-YYYY, YYYY-MM-DD or a spreadsheet date); "
                "unreadable optional dates are left empty unless strict_dates is set"
            )

    for f in schema.fields:
        if f.vocabulary is not None:
            known = ", ".join(sorted(f.vocabulary))
            rules.append(f"{f.variants[0]} is expected to be one of: {known}; other values are flagged for review")

    stored = " and ".join(_header(schema, name) for name in schema.unique_columns)
    rules.append(f"Rows whose {stored} is already stored are skipped on save")

    return RuleSet(
        import_type=schema.import_type,
        title=schema.title,
        required_fields=tuple(f.variants[0] for f in schema.fields if f.required),
        optional_fields=tuple(f.variants[0] for f in schema.fields if not f.required),
        rules=tuple(rules),
    )


def render_rules(rule_set: RuleSet) -> list[str]:
    lines = [
        f"{rule_set.title} ({rule_set.import_type.value})",
        f"  required: {', '.join(rule_set.required_fields) or '-'}",
        f"  optional: {', '.join(rule_set.optional_fields) or '-'}",
        "  rules:",
    ]
    lines.extend(f"    - {rule}" for rule in rule_set.rules)
    return lines


def write_template(import_type: ImportType | str, path: Path) -> Path:
    """Write an empty import workbook for ``import_type``.

    Sheet 1 holds a title row, a note, the start marker and the header row,
    ready for data from row 5. Sheet 2 lists the validation rules.

    Raises:
        ValueError: unknown import type
        OSError: the file cannot be written
    """
    schema = get_schema(import_type)
    headers = template_headers(schema)

    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    ws.append([f"{schema.title} import template"])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append([TEMPLATE_NOTE])
    ws.append([TEMPLATE_MARKER])
    # a leading "=" would otherwise be saved as a formula
    ws["A3"].data_type = "s"
    ws["A3"].font = Font(bold=True)
    ws.append(headers)
    for col, spec in enumerate(schema.fields, start=1):
        cell = ws.cell(row=4, column=col)
        cell.font = HEADER_FONT
        cell.fill = REQUIRED_FILL if spec.required else HEADER_FILL
        ws.column_dimensions[get_column_letter(col)].width = max(len(cell.value) + 4, 14)
    ws.freeze_panes = "A5"

    rules_ws = wb.create_sheet(title="Rules")
    for line in render_rules(describe_rules(schema)):
        rules_ws.append([line.strip()])
    rules_ws.column_dimensions["A"].width = 100

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.debug("template type=%s columns=%d path=%s", schema.import_type.value, len(headers), path)
    return path
