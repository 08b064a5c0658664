from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from typing import Any, Protocol

from ..models.processing_result import BatchStatsAccumulator, PersistResult
from .progress import ProgressCallback

"""Batch persistence coordinator.

Valid records are written in contiguous chunks (5000 by default), strictly in
order. The first failing chunk stops submission; everything committed before
it stays committed and is reported in the PersistResult.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "RecordSink",
    "persist_records",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5000


class RecordSink(Protocol):
    def save(self, records: Sequence[Any]) -> tuple[int, int]: ...


def persist_records(
    records: Sequence[Any],
    store: RecordSink,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    progress: ProgressCallback | None = None,
) -> PersistResult:
    """Save records through ``store.save`` in batches.

    Args:
        records: validated records, in import order
        store: object whose ``save(batch)`` returns ``(saved, skipped)``
        batch_size: records per batch (>= 1)
        progress: callback receiving (end / total, "Processing: end/total records...")

    Returns:
        PersistResult with totals, batch counts and timing statistics

    Raises:
        ValueError: batch_size < 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1 (got {batch_size})")

    total = len(records)
    total_batches = math.ceil(total / batch_size) if total else 0
    stats = BatchStatsAccumulator()
    saved = skipped = committed = 0
    failed_batch: int | None = None
    error: str | None = None
    t0 = time.perf_counter()

    for number, begin in enumerate(range(0, total, batch_size), start=1):
        end = min(begin + batch_size, total)
        batch = records[begin:end]
        batch_start = time.perf_counter()
        try:
            batch_saved, batch_skipped = store.save(batch)
        except Exception as e:
            failed_batch = number
            error = str(e) or e.__class__.__name__
            logger.debug("batch %d/%d failed: %s", number, total_batches, error, exc_info=True)
            break
        finally:
            stats.add_batch_time(time.perf_counter() - batch_start)
        saved += batch_saved
        skipped += batch_skipped
        committed += 1
        if progress is not None:
            progress(end / total, f"Processing: {end}/{total} records...")

    _, avg, p95 = stats.get_stats()
    if total == 0 and progress is not None:
        progress(1.0, "Processing: 0/0 records...")
    return PersistResult(
        saved=saved,
        skipped=skipped,
        total_records=total,
        batches_committed=committed,
        total_batches=total_batches,
        failed_batch=failed_batch,
        error=error,
        elapsed_seconds=time.perf_counter() - t0,
        avg_batch_seconds=avg,
        p95_batch_seconds=p95,
    )
