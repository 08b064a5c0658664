from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""IssueRecord model for the per-run review log.

One JSON object per line with a fixed key set. ``row`` is the worksheet row
number, or -1 for file-level entries (structure errors, failed batches).
"""

__all__ = [
    "IssueRecord",
    "ISSUE_OUTCOMES",
]

ISSUE_OUTCOMES = frozenset({"INVALID", "DUPLICATE", "FLAGGED", "STRUCTURE_ERROR", "BATCH_FAILED"})


@dataclass(frozen=True)
class IssueRecord:
    """Structured review-log entry.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: workbook file name
        import_type: import selector ("identity-group", ...)
        row: worksheet row number, -1 when not row-specific
        outcome: one of ISSUE_OUTCOMES
        message: operator-facing description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    import_type: str
    row: int
    outcome: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, import_type: str, row: int, outcome: str, message: str) -> IssueRecord:
        """Create a new IssueRecord stamped with the current UTC time.

        Raises:
            ValueError: outcome is not one of ISSUE_OUTCOMES
        """
        if outcome not in ISSUE_OUTCOMES:
            raise ValueError(f"unknown outcome: {outcome}")
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return IssueRecord(
            timestamp=ts,
            file=file,
            import_type=import_type,
            row=row,
            outcome=outcome,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line without extra keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
