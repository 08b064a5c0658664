from __future__ import annotations

from ..models.processing_result import PersistResult
from .pipeline import ImportResult

"""SUMMARY line rendering.

Import:  SUMMARY type=<t> status=<s> rows=<n> valid=<v> invalid=<i>
         duplicates=<d> flagged=<f> blank=<b> elapsed_sec=<e>
Persist: SUMMARY saved=<s> skipped=<k> batches=<c>/<t>
"""

__all__ = [
    "format_seconds",
    "render_import_summary",
    "render_persist_summary",
]


def format_seconds(seconds: float) -> str:
    """Render elapsed seconds without scientific notation or trailing zeros.

    >>> format_seconds(2.0)
    '2'
    >>> format_seconds(0.0001234)
    '0.000123'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip('0').rstrip('.')
    return f"{seconds:.3f}".rstrip('0').rstrip('.')


def render_import_summary(result: ImportResult) -> str:
    """Render the SUMMARY line for one import run.

    Examples:
        >>> from pathlib import Path
        >>> from migration_intake.schemas import ImportType
        >>> from migration_intake.services.pipeline import ImportStatus
        >>> r = ImportResult(ImportType.PERSONNEL, Path("hr.xlsx"), ImportStatus.COMPLETED)
        >>> render_import_summary(r)
        'SUMMARY type=personnel status=COMPLETED rows=0 valid=0 invalid=0 duplicates=0 flagged=0 blank=0 elapsed_sec=0'
    """
    c = result.counts()
    return (
        f"SUMMARY type={result.import_type.value} "
        f"status={result.status.value} "
        f"rows={c['rows']} "
        f"valid={c['valid']} "
        f"invalid={c['invalid']} "
        f"duplicates={c['duplicates']} "
        f"flagged={c['flagged']} "
        f"blank={c['blank']} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_persist_summary(result: PersistResult) -> str:
    line = (
        f"SUMMARY saved={result.saved} "
        f"skipped={result.skipped} "
        f"batches={result.batches_committed}/{result.total_batches}"
    )
    if result.failed_batch is not None:
        line += f" failed_batch={result.failed_batch}"
    return line
