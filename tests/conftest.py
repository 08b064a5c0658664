# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest
from openpyxl import Workbook

IDENTITY_ROWS: list[list[Any]] = [
    ["Identity group export", None, None],
    ["Owner: service desk"],
    ["===START DATA BELOW==="],
    ["Group", "Account", "App", "Suite", "OTAP", "Critical"],
    ["GG-APP-FINANCE", "svc_fin01", "Finance Portal", "Finance", "P", "YES"],
    ["GG-APP-FINANCE", "svc_fin01", "Finance Portal", "Finance", "P", "YES"],
]


def write_xlsx(path: Path, sheets: Mapping[str, Sequence[Sequence[Any]]] | Sequence[Sequence[Any]]) -> Path:
    """Write a workbook cell by cell with openpyxl.

    ``None`` leaves the cell empty and an empty list leaves the whole row
    empty. Strings starting with "=" are stored as formulas, as Excel does.
    """
    if not isinstance(sheets, Mapping):
        sheets = {"Sheet1": sheets}
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    wb.save(path)
    return path


def write_excel(path: Path, sheets: Mapping[str, Sequence[Sequence[Any]]] | Sequence[Sequence[Any]]) -> Path:
    """Write a workbook the way operators' tools do (pandas + openpyxl)."""
    if not isinstance(sheets, Mapping):
        sheets = {"Sheet1": sheets}
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def make_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    def _make(name: str, sheets: Any) -> Path:
        return write_xlsx(temp_workdir / "data" / name, sheets)
    return _make


@pytest.fixture()
def make_excel(temp_workdir: Path) -> Callable[..., Path]:
    def _make(name: str, sheets: Any) -> Path:
        return write_excel(temp_workdir / "data" / name, sheets)
    return _make


@pytest.fixture()
def identity_workbook(make_xlsx) -> Path:
    return make_xlsx("identity.xlsx", IDENTITY_ROWS)


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 2
progress_interval: 10
strict_dates: false
logs_directory: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
