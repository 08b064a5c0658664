from __future__ import annotations

import threading
from datetime import date

import pytest

from migration_intake.config.loader import ImportSettings
from migration_intake.excel.locator import StructureError
from migration_intake.excel.reader import WorkbookOpenError
from migration_intake.models import IdentityGroupRecord, PackagingStatusRecord
from migration_intake.schemas import ImportType
from migration_intake.services.pipeline import ImportStatus, RowOutcome, run_import

HEADER = ["Group", "Account", "App", "Suite", "OTAP", "Critical"]


def _identity_rows(data: list[list]) -> list[list]:
    return [["export"], ["===START DATA BELOW==="], HEADER, *data]


def test_duplicate_key_after_first_occurrence(identity_workbook):
    result = run_import(identity_workbook, "identity-group")
    assert result.status is ImportStatus.COMPLETED
    assert result.import_type is ImportType.IDENTITY_GROUP
    assert len(result.valid) == 1
    assert len(result.invalid) == 0
    assert len(result.duplicates) == 1
    dup = result.duplicates[0]
    assert dup.row_number == 6
    assert dup.outcome is RowOutcome.DUPLICATE
    assert dup.key == ("GG-APP-FINANCE", "svc_fin01")
    assert dup.describe() == (
        "Row 6: Duplicate combination of group name 'GG-APP-FINANCE' and system account 'svc_fin01'"
    )
    rec = result.valid[0]
    assert isinstance(rec, IdentityGroupRecord)
    assert rec.application_name == "Finance Portal"
    assert rec.import_set == result.import_set
    assert result.import_set.startswith("IdentityGroup_Import_")
    assert result.start_row == 3
    assert result.header_row == 4
    assert result.column_map["environment"] == 4
    assert result.counts() == {"rows": 2, "valid": 1, "invalid": 0, "duplicates": 1, "flagged": 0, "blank": 0}


def test_blank_rows_land_in_no_bucket(make_xlsx):
    path = make_xlsx("blank.xlsx", _identity_rows([["G1", "a1"], [], ["", "  ", None], ["G2", "a2"]]))
    result = run_import(path, "identity-group")
    assert result.blank_rows == 2
    assert result.rows_processed == 4
    assert len(result.valid) == 2
    assert not result.invalid and not result.duplicates


def test_invalid_rows_do_not_occupy_keys(make_xlsx):
    path = make_xlsx("inv.xlsx", _identity_rows([["G1", ""], ["G1", "a1"], ["G1", "a1"]]))
    result = run_import(path, "identity-group")
    assert [i.row_number for i in result.invalid] == [4]
    assert result.invalid[0].messages == ("system account is required",)
    assert len(result.valid) == 1
    assert [i.row_number for i in result.duplicates] == [6]


def test_personnel_missing_account(make_xlsx):
    path = make_xlsx(
        "hr.xlsx",
        [["=START DATA BELOW="], ["System Account", "Department", "Leave Date"], ["", "Finance", "45335"],
         ["jdoe", "Finance", "13-02-2024"]],
    )
    result = run_import(path, ImportType.PERSONNEL)
    assert len(result.invalid) == 1
    assert result.invalid[0].describe() == "Row 3: system account is required"
    assert result.valid[0].leave_date == date(2024, 2, 13)


def test_flagged_rows_stay_valid(make_xlsx):
    path = make_xlsx(
        "pkg.xlsx",
        [["START DATA BELOW"], ["Application Name", "Package Status", "Package Readiness Date"],
         ["Finance Portal", "Done", "01-03-2025"], ["HR Suite", "In Progress", ""]],
    )
    result = run_import(path, "packaging")
    assert len(result.valid) == 2
    assert isinstance(result.valid[0], PackagingStatusRecord)
    assert [(i.row_number, i.outcome) for i in result.flagged] == [(3, RowOutcome.FLAGGED)]
    assert result.flagged[0].messages == ("unrecognised package status 'Done'",)
    assert result.valid[1].readiness_date is None


def test_strict_dates_setting(make_xlsx):
    path = make_xlsx(
        "pkg.xlsx",
        [["START DATA BELOW"], ["Application Name", "Readiness Date"], ["Finance Portal", "soon"]],
    )
    assert len(run_import(path, "packaging").valid) == 1
    strict = run_import(path, "packaging", settings=ImportSettings(strict_dates=True))
    assert strict.invalid[0].messages == ("package readiness date 'soon' is not a valid date",)


def test_missing_marker_is_fatal(make_xlsx):
    path = make_xlsx("nomarker.xlsx", [HEADER, ["G1", "a1"]])
    seen: list[float] = []
    with pytest.raises(StructureError):
        run_import(path, "identity-group", progress=lambda f, d: seen.append(f))
    assert max(seen) < 0.72


def test_unknown_sheet_is_fatal(identity_workbook):
    with pytest.raises(WorkbookOpenError):
        run_import(identity_workbook, "identity-group", sheet="Missing")


def test_progress_is_monotonic_and_completes(make_xlsx):
    data = [[f"G{i}", f"acc{i}"] for i in range(120)]
    path = make_xlsx("many.xlsx", _identity_rows(data))
    events: list[tuple[float, str]] = []
    run_import(path, "identity-group", progress=lambda f, d: events.append((f, d)))
    fractions = [f for f, _ in events]
    assert fractions == sorted(fractions)
    assert all(0.0 <= f <= 1.0 for f in fractions)
    assert fractions[-1] == 1.0
    row_updates = [d for _, d in events if d.startswith("Phase 4/5: Processing rows... Row ")]
    # every 50 rows plus the final update
    assert row_updates[:3] == [
        "Phase 4/5: Processing rows... Row 1 of 120, valid 0, invalid 0, duplicates 0",
        "Phase 4/5: Processing rows... Row 51 of 120, valid 50, invalid 0, duplicates 0",
        "Phase 4/5: Processing rows... Row 101 of 120, valid 100, invalid 0, duplicates 0",
    ]
    decoding = [f for f, d in events if d.startswith("Phase 4/5")]
    assert all(0.72 <= f <= 0.90 for f in decoding)


@pytest.mark.parametrize("n", [0, 1, 3, 7])
def test_cancel_after_n_rows_keeps_exactly_those_rows(make_xlsx, n: int):
    data = [[f"G{i}", f"acc{i}"] for i in range(10)]
    data[5] = ["", "acc5"]  # invalid
    data[6] = ["G0", "acc0"]  # duplicate of first row
    path = make_xlsx("cancel.xlsx", _identity_rows(data))
    cancel = threading.Event()

    def progress(fraction: float, description: str) -> None:
        if f"Row {n + 1} of 10," in description:
            cancel.set()

    result = run_import(
        path, "identity-group", settings=ImportSettings(progress_interval=1), progress=progress, cancel=cancel
    )
    full = run_import(path, "identity-group")
    assert result.status is ImportStatus.CANCELLED
    assert result.rows_processed == n
    first_rows = set(range(4, 4 + n))
    assert [r.account for r in result.valid] == [
        r.account for r, row in zip(full.valid, _valid_row_numbers(full)) if row in first_rows
    ]
    assert [i.row_number for i in result.invalid] == [i.row_number for i in full.invalid if i.row_number in first_rows]
    assert [i.row_number for i in result.duplicates] == [
        i.row_number for i in full.duplicates if i.row_number in first_rows
    ]


def _valid_row_numbers(result) -> list[int]:
    # data starts at worksheet row 4; rows are in order and none are blank
    rejected = {i.row_number for i in result.invalid + result.duplicates}
    return [r for r in range(4, 4 + result.rows_processed) if r not in rejected]


def test_cancel_before_start(identity_workbook):
    cancel = threading.Event()
    cancel.set()
    result = run_import(identity_workbook, "identity-group", cancel=cancel)
    assert result.status is ImportStatus.CANCELLED
    assert result.rows_processed == 0
    assert result.start_row is None
    assert result.finished_at is not None


def test_unknown_import_type(identity_workbook):
    with pytest.raises(ValueError):
        run_import(identity_workbook, "payroll")
