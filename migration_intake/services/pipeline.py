from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..config.loader import ImportSettings
from ..excel.grid import SparseRow, extract_row, is_blank_row
from ..excel.locator import StructureLocation, locate_structure
from ..excel.reader import read_worksheet
from ..schemas import ImportSchema, ImportType, get_schema
from .decoder import ImportStamp, decode_row
from .dedup import Deduplicator
from .progress import ImportStage, ProgressCallback, ProgressReporter
from .validator import validate

"""Progress-reporting import pipeline.

One generic driver serves every import type: the schema descriptor supplies
headers, required fields, vocabularies and natural keys. A run walks five
stages (see ImportStage), classifies each non-blank data row into exactly one
of valid / invalid / duplicate, and returns everything as an ImportResult.

Cancellation is cooperative: the ``cancel`` event is checked at every stage
boundary and before each data row. A cancelled run returns the buckets built
so far with status CANCELLED; structural problems raise ImportFatalError.
"""

__all__ = [
    "CancelToken",
    "ImportStatus",
    "RowOutcome",
    "RowIssue",
    "ImportResult",
    "run_import",
    "classify_rows",
]

logger = logging.getLogger(__name__)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class ImportStatus(str, Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RowOutcome(str, Enum):
    INVALID = "INVALID"
    DUPLICATE = "DUPLICATE"
    FLAGGED = "FLAGGED"  # valid row carrying review notes


@dataclass(frozen=True)
class RowIssue:
    row_number: int  # worksheet row number
    outcome: RowOutcome
    messages: tuple[str, ...]
    key: tuple[str, ...] | None = None  # natural key, when the schema has one

    def describe(self) -> str:
        """Operator-facing line, e.g. "Row 7: system account is required"."""
        return f"Row {self.row_number}: {'; '.join(self.messages)}"


@dataclass
class ImportResult:
    import_type: ImportType
    source: Path
    status: ImportStatus
    valid: list[Any] = field(default_factory=list)
    invalid: list[RowIssue] = field(default_factory=list)
    duplicates: list[RowIssue] = field(default_factory=list)
    flagged: list[RowIssue] = field(default_factory=list)
    rows_processed: int = 0  # data rows consumed, blank rows included
    blank_rows: int = 0
    start_row: int | None = None
    header_row: int | None = None
    column_map: dict[str, int] = field(default_factory=dict)
    import_set: str = ""
    sheet_name: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def counts(self) -> dict[str, int]:
        return {
            "rows": self.rows_processed,
            "valid": len(self.valid),
            "invalid": len(self.invalid),
            "duplicates": len(self.duplicates),
            "flagged": len(self.flagged),
            "blank": self.blank_rows,
        }

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def has_rejections(self) -> bool:
        return bool(self.invalid or self.duplicates)


def _cancelled(cancel: CancelToken | None) -> bool:
    return cancel is not None and cancel.is_set()


def _progress_detail(index: int, total: int, result: ImportResult) -> str:
    return (
        f"Row {index} of {total}, valid {len(result.valid)}, "
        f"invalid {len(result.invalid)}, duplicates {len(result.duplicates)}"
    )


def classify_rows(
    rows: list[tuple[int, SparseRow]],
    location: StructureLocation,
    schema: ImportSchema,
    result: ImportResult,
    *,
    stamp: ImportStamp,
    settings: ImportSettings,
    reporter: ProgressReporter,
    cancel: CancelToken | None = None,
) -> bool:
    """Decode, validate and deduplicate data rows into ``result``.

    Args:
        rows: (worksheet row number, sparse row) pairs below the header
        location: located structure (column map)
        schema: import schema
        result: result whose buckets are filled in place
        stamp: run provenance
        settings: date formats, strict_dates, progress_interval
        reporter: progress sink
        cancel: cooperative cancellation token

    Returns:
        False when cancelled before all rows were consumed
    """
    dedup = Deduplicator(schema)
    total = len(rows)
    interval = max(1, settings.progress_interval)
    for index, (row_number, row) in enumerate(rows):
        if index % interval == 0:
            reporter.advance(
                ImportStage.DECODING,
                index / total if total else 1.0,
                _progress_detail(index + 1, total, result),
            )
        if _cancelled(cancel):
            logger.debug("cancel requested before row %d", row_number)
            return False
        result.rows_processed += 1
        if is_blank_row(row):
            result.blank_rows += 1
            continue

        decoded = decode_row(row, row_number, location.column_map, schema, stamp, settings.date_formats)
        verdict = validate(decoded, schema, strict_dates=settings.strict_dates)
        key = dedup.key_of(decoded.record)
        if not verdict.is_valid:
            result.invalid.append(RowIssue(row_number, RowOutcome.INVALID, tuple(verdict.errors), key))
            continue
        duplicate = dedup.check(decoded.record)
        if duplicate is not None:
            result.duplicates.append(RowIssue(row_number, RowOutcome.DUPLICATE, (duplicate,), key))
            continue
        result.valid.append(decoded.record)
        if verdict.notes:
            result.flagged.append(RowIssue(row_number, RowOutcome.FLAGGED, tuple(verdict.notes), key))
    reporter.advance(ImportStage.DECODING, 1.0, _progress_detail(total, total, result))
    return True


def run_import(
    path: Path,
    import_type: ImportType | str,
    *,
    settings: ImportSettings | None = None,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    sheet: str | None = None,
) -> ImportResult:
    """Import one worksheet and classify its rows.

    Parameters
    ----------
    path : workbook (.xlsx)
    import_type : selector, e.g. "identity-group"
    settings : ImportSettings (defaults when None)
    progress : callback receiving (fraction, description)
    cancel : object with ``is_set()`` (threading.Event)
    sheet : worksheet name; first worksheet when None

    Raises
    ------
    ValueError
        unknown import type
    ImportFatalError
        workbook unreadable (WorkbookOpenError) or structure not found
        (StructureError)
    """
    schema = get_schema(import_type)
    settings = settings or ImportSettings()
    reporter = ProgressReporter(progress)
    started = datetime.now(UTC)
    t0 = time.perf_counter()
    stamp = ImportStamp.for_schema(schema, started)
    result = ImportResult(
        import_type=schema.import_type,
        source=Path(path),
        status=ImportStatus.COMPLETED,
        import_set=stamp.import_set,
        started_at=started,
    )

    def finish(status: ImportStatus) -> ImportResult:
        result.status = status
        result.finished_at = datetime.now(UTC)
        if status is ImportStatus.CANCELLED:
            reporter.report(reporter.fraction, "Import cancelled")
        logger.debug(
            "import %s %s in %.3fs counts=%s", schema.import_type.value, status.value,
            time.perf_counter() - t0, result.counts(),
        )
        return result

    reporter.enter(ImportStage.INITIALIZING, schema.title)
    if _cancelled(cancel):
        return finish(ImportStatus.CANCELLED)

    reporter.enter(ImportStage.OPENING)
    worksheet = read_worksheet(Path(path), sheet)
    result.sheet_name = worksheet.sheet_name
    numbered: list[tuple[int, SparseRow]] = []
    count = len(worksheet.rows)
    for i, raw in enumerate(worksheet.rows):
        numbered.append((raw.row_number, extract_row(raw.cells)))
        if count and i % max(1, settings.progress_interval) == 0:
            reporter.advance(ImportStage.OPENING, i / count)
    if _cancelled(cancel):
        return finish(ImportStatus.CANCELLED)

    reporter.enter(ImportStage.LOCATING)
    location = locate_structure([r for _, r in numbered], schema, [n for n, _ in numbered])
    result.start_row = location.start_row_number
    result.header_row = location.header_row_number
    result.column_map = dict(location.column_map)
    reporter.advance(ImportStage.LOCATING, 1.0, f"header at row {location.header_row_number}")
    if _cancelled(cancel):
        return finish(ImportStatus.CANCELLED)

    reporter.enter(ImportStage.DECODING)
    completed = classify_rows(
        numbered[location.header_index + 1:],
        location,
        schema,
        result,
        stamp=stamp,
        settings=settings,
        reporter=reporter,
        cancel=cancel,
    )
    if not completed:
        return finish(ImportStatus.CANCELLED)

    reporter.enter(ImportStage.FINALIZING)
    if _cancelled(cancel):
        return finish(ImportStatus.CANCELLED)
    finish(ImportStatus.COMPLETED)
    counts = result.counts()
    reporter.finish(
        f"Import complete: {counts['valid']} valid, {counts['invalid']} invalid, "
        f"{counts['duplicates']} duplicates"
    )
    return result
