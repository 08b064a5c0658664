from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.cell.read_only import EmptyCell
from openpyxl.utils.exceptions import InvalidFileException

"""Raw worksheet reader for .xlsx workbooks (openpyxl, read-only mode).

Each row comes back as its stored cells (reference, openpyxl data type,
typed value); turning those into text and normalizing blanks is left to the
grid extractor. Formula cells keep their formula text, so a marker written as
``===START DATA BELOW===`` by pandas/openpyxl (stored as a formula without a
cached value) still reads back as the marker. A shared-string index outside
the table reads as an empty cell rather than failing the whole read.

Only the first worksheet is read unless a sheet name is given.
"""

__all__ = [
    "ImportFatalError",
    "WorkbookOpenError",
    "RawCell",
    "RawRow",
    "WorksheetData",
    "list_sheet_names",
    "read_worksheet",
]


class ImportFatalError(Exception):
    """Base class for errors that abort an import before any row is classified."""


class WorkbookOpenError(ImportFatalError):
    """Raised when the workbook cannot be opened or has no usable worksheet."""


@dataclass(frozen=True)
class RawCell:
    reference: str  # "B7"
    cell_type: str | None  # openpyxl data_type: s / n / b / d / f / e
    value: Any  # typed value as openpyxl returns it


@dataclass(frozen=True)
class RawRow:
    row_number: int  # 1-based worksheet row number
    cells: list[RawCell]


@dataclass
class WorksheetData:
    path: Path
    sheet_name: str
    rows: list[RawRow] = field(default_factory=list)


class _SharedStringTable(list):
    """Shared-string lookup that never aborts a read.

    Without a table the stored index is taken literally; an index outside the
    table reads as an empty cell.
    """

    def __getitem__(self, index):
        if not self:
            return str(index)
        if isinstance(index, int) and index < 0:
            return None
        try:
            return super().__getitem__(index)
        except IndexError:
            return None


def _open_workbook(path: Path) -> Any:
    if not path.exists():
        raise WorkbookOpenError(f"workbook not found: {path}")
    try:
        return load_workbook(path, read_only=True, data_only=False)
    except (InvalidFileException, zipfile.BadZipFile) as e:
        raise WorkbookOpenError(f"not a valid .xlsx workbook: {path.name}") from e
    except KeyError as e:
        raise WorkbookOpenError(f"workbook part missing in {path.name}: {e}") from e
    except SyntaxError as e:
        # xml.etree / lxml parse errors
        raise WorkbookOpenError(f"malformed workbook {path.name}: {e}") from e
    except OSError as e:
        raise WorkbookOpenError(f"cannot open workbook {path.name}: {e}") from e


def _raw_rows(ws: Any) -> list[RawRow]:
    # Dimensions written by other tools can be wrong; read whatever is stored.
    ws.reset_dimensions()
    ws._shared_strings = _SharedStringTable(ws._shared_strings)
    rows: list[RawRow] = []
    last_row_number = 0
    for cells in ws.iter_rows():
        stored = [c for c in cells if not isinstance(c, EmptyCell)]
        row_number = stored[0].row if stored else last_row_number + 1
        last_row_number = row_number
        rows.append(
            RawRow(
                row_number=row_number,
                cells=[RawCell(reference=c.coordinate, cell_type=c.data_type, value=c.value) for c in stored],
            )
        )
    return rows


def list_sheet_names(path: Path) -> list[str]:
    """Return worksheet names in workbook order."""
    wb = _open_workbook(path)
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def read_worksheet(path: Path, sheet_name: str | None = None) -> WorksheetData:
    """Read one worksheet's stored rows.

    Parameters
    ----------
    path: workbook file (.xlsx)
    sheet_name: worksheet to read (None = first worksheet)

    Raises
    ------
    WorkbookOpenError: file missing / not an .xlsx package / no worksheet /
        unknown sheet name / malformed XML
    """
    wb = _open_workbook(path)
    try:
        names = list(wb.sheetnames)
        if not names:
            raise WorkbookOpenError(f"no worksheets found in {path.name}")
        if sheet_name is None:
            sheet_name = names[0]
        elif sheet_name not in names:
            raise WorkbookOpenError(f"sheet '{sheet_name}' not found in {path.name} (available: {names})")
        try:
            rows = _raw_rows(wb[sheet_name])
        except (SyntaxError, ValueError) as e:
            # ValueError: non-numeric shared-string index or cell reference
            raise WorkbookOpenError(f"malformed worksheet '{sheet_name}' in {path.name}: {e}") from e
        return WorksheetData(path=path, sheet_name=sheet_name, rows=rows)
    finally:
        wb.close()
