from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.issue_record import IssueRecord
from ..models.processing_result import PersistResult

"""Review log buffering.

Each run that has something to report writes ``logs/issues-YYYYMMDD-HHMMSS.log``
(UTC) as JSON Lines. Entries are buffered in memory and appended on flush().
"""

__all__ = [
    "IssueRecord",
    "IssueLogBuffer",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class IssueLogBuffer:
    """In-memory buffer of IssueRecords; flush() appends JSON Lines.

    The file path is fixed on first access; single-threaded use only.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._records: list[IssueRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"issues-{stamp}.log"
        return self._file_path

    def append(self, record: IssueRecord) -> None:
        self._records.append(record)

    def add(self, file: str, import_type: str, row: int, outcome: str, message: str) -> None:
        self.append(IssueRecord.create(file, import_type, row, outcome, message))

    def extend_from_issues(self, file: str, import_type: str, issues: Iterable) -> None:
        """Append one entry per RowIssue (messages joined with '; ')."""
        for issue in issues:
            outcome = getattr(issue.outcome, "value", issue.outcome)
            self.add(file, import_type, issue.row_number, outcome, "; ".join(issue.messages))

    def add_batch_failure(self, file: str, import_type: str, result: PersistResult) -> None:
        if result.failed_batch is None:
            return
        self.add(
            file,
            import_type,
            -1,
            "BATCH_FAILED",
            f"batch {result.failed_batch}/{result.total_batches} failed: {result.error}",
        )

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered entries; returns the file path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
