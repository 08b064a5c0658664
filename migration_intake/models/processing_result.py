from __future__ import annotations

import statistics
from dataclasses import dataclass

"""Persistence result models.

PersistResult is what the batch persistence coordinator hands back to the
caller; BatchStatsAccumulator collects per-batch timings for it.
"""

__all__ = [
    "PersistResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class PersistResult:
    """Outcome of saving one import's valid records.

    When a batch fails, totals cover only the batches committed before it.
    """
    saved: int  # rows the store accepted
    skipped: int  # rows the store rejected as storage-level duplicates
    total_records: int  # rows offered
    batches_committed: int
    total_batches: int
    failed_batch: int | None = None  # 1-based index of the failing batch
    error: str | None = None
    elapsed_seconds: float = 0.0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed_batch is None

    @property
    def unsubmitted(self) -> int:
        """Records never handed to the store (failed batch included)."""
        return self.total_records - self.saved - self.skipped


class BatchStatsAccumulator:
    """Accumulates batch timing statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        """Add a batch timing measurement."""
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
