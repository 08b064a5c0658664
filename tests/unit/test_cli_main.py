from __future__ import annotations

import json
from pathlib import Path

import psycopg2
import pytest

from migration_intake.cli import EXIT_CANCELLED, EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL
from migration_intake.cli import main as cli_main
from migration_intake.db.memory_store import InMemoryRecordStore
from migration_intake.logging.init import reset_logging
from migration_intake.schemas import ImportType
from migration_intake.services.pipeline import ImportResult, ImportStatus

PERSONNEL_ROWS = [
    ["HR export"],
    ["===START DATA BELOW==="],
    ["Account", "Department", "Leave Date"],
    ["jdoe", "Finance", "2025-03-31"],
    ["asmith", "IT", None],
    ["bkeller", "Sales", None],
]


def _log_entries(temp_workdir: Path) -> list[dict]:
    entries = []
    for p in sorted((temp_workdir / "logs").glob("issues-*.log")):
        entries.extend(json.loads(line) for line in p.read_text(encoding="utf-8").splitlines())
    return entries


def test_cli_duplicate_rows_partial(identity_workbook: Path, temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main([str(identity_workbook), "--type", "identity-group"])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "INFO Importing identity.xlsx as identity-group" in out
    assert (
        "WARN Row 6: Duplicate combination of group name 'GG-APP-FINANCE' and system account 'svc_fin01'"
        in out
    )
    assert "SUMMARY type=identity-group status=COMPLETED rows=2 valid=1 invalid=0 duplicates=1" in out
    assert "INFO review log: " in out
    entries = _log_entries(temp_workdir)
    assert [(e["row"], e["outcome"]) for e in entries] == [(6, "DUPLICATE")]


def test_cli_clean_import_without_commit(make_xlsx, temp_workdir: Path, capsys):
    reset_logging()
    wb = make_xlsx("hr.xlsx", PERSONNEL_ROWS)
    code = cli_main([str(wb), "--type", "personnel"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "INFO 3 valid rows not saved (use --commit)" in out
    assert "SUMMARY saved=" not in out
    assert "review log" not in out
    assert _log_entries(temp_workdir) == []


def test_cli_commit_in_memory(make_xlsx, write_config: Path, monkeypatch, capsys):
    reset_logging()
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    wb = make_xlsx("hr.xlsx", PERSONNEL_ROWS)
    code = cli_main([str(wb), "--type", "personnel", "--commit"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    # batch_size is 2 in the sample config
    assert "SUMMARY saved=3 skipped=0 batches=2/2" in out


def test_cli_commit_connection_failure_is_failed_first_batch(
    make_xlsx, temp_workdir: Path, monkeypatch, capsys
):
    reset_logging()
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)

    def _refuse(settings):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr("migration_intake.cli.app._db_connection", _refuse)
    wb = make_xlsx("hr.xlsx", PERSONNEL_ROWS)
    code = cli_main([str(wb), "--type", "personnel", "--commit"])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "ERROR batch 1/1 failed: connection failed: connection refused (0 saved before the failure)" in out
    assert "SUMMARY saved=0 skipped=0 batches=0/1 failed_batch=1" in out
    assert "in-memory" not in out
    entries = _log_entries(temp_workdir)
    assert entries[-1]["outcome"] == "BATCH_FAILED"
    assert "connection failed" in entries[-1]["message"]


def test_cli_batch_failure_is_partial(make_xlsx, write_config: Path, temp_workdir: Path, monkeypatch, capsys):
    reset_logging()
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")

    class FailingSecondBatch(InMemoryRecordStore):
        def save(self, records):
            if self.save_calls >= 1:
                self.save_calls += 1
                raise RuntimeError("disk full")
            return super().save(records)

    monkeypatch.setattr("migration_intake.cli.app.InMemoryRecordStore", FailingSecondBatch)
    wb = make_xlsx("hr.xlsx", PERSONNEL_ROWS)
    code = cli_main([str(wb), "--type", "personnel", "--commit"])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "ERROR batch 2/2 failed: disk full (2 saved before the failure)" in out
    assert "SUMMARY saved=2 skipped=0 batches=1/2 failed_batch=2" in out
    entries = _log_entries(temp_workdir)
    assert entries[-1]["outcome"] == "BATCH_FAILED"
    assert entries[-1]["row"] == -1


def test_cli_missing_workbook(temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main(["data/nope.xlsx", "--type", "cluster"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR workbook: workbook not found" in out


def test_cli_missing_marker_logs_structure_error(make_xlsx, temp_workdir: Path, capsys):
    reset_logging()
    wb = make_xlsx("hr.xlsx", [["Account", "Department"], ["jdoe", "Finance"]])
    code = cli_main([str(wb), "--type", "personnel"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR structure: start marker '===START DATA BELOW===' not found" in out
    entries = _log_entries(temp_workdir)
    assert len(entries) == 1
    assert entries[0]["outcome"] == "STRUCTURE_ERROR"
    assert entries[0]["file"] == "hr.xlsx"


def test_cli_invalid_config(identity_workbook: Path, temp_workdir: Path, capsys):
    reset_logging()
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text("batch_size: 0\n", encoding="utf-8")
    code = cli_main([str(identity_workbook), "--type", "identity-group"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR config: config validation failed: batch_size" in out


def test_cli_explicit_config_must_exist(identity_workbook: Path, capsys):
    reset_logging()
    code = cli_main([str(identity_workbook), "--type", "identity-group", "--config", "config/other.yml"])
    assert code == EXIT_FATAL
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_cli_cancelled_run(identity_workbook: Path, monkeypatch, capsys):
    reset_logging()

    def _cancelled(path, import_type, **kwargs):
        return ImportResult(ImportType.IDENTITY_GROUP, Path(path), ImportStatus.CANCELLED)

    monkeypatch.setattr("migration_intake.cli.app.run_import", _cancelled)
    code = cli_main([str(identity_workbook), "--type", "identity-group", "--commit"])
    out = capsys.readouterr().out
    assert code == EXIT_CANCELLED
    assert "status=CANCELLED" in out
    assert "WARN import cancelled; nothing persisted" in out
    assert "SUMMARY saved=" not in out


def test_cli_debug_flag(identity_workbook: Path, capsys):
    reset_logging()
    cli_main([str(identity_workbook), "--type", "identity-group", "--debug"])
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    reset_logging()


def test_cli_requires_type(identity_workbook: Path):
    reset_logging()
    with pytest.raises(SystemExit) as exc:
        cli_main([str(identity_workbook)])
    assert exc.value.code == 2
