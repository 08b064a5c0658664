from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT through psycopg2.extras.execute_values.

With ``conflict_columns`` the statement becomes
``INSERT ... ON CONFLICT (cols) DO NOTHING RETURNING 1``; the number of
returned rows is the number actually inserted and the rest are reported as
skipped (storage-level duplicates).
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "quote_ident",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single batch insert operation."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float  # Start timestamp (time.time())
    end_time: float  # End timestamp (time.time())


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    skipped_rows: int = 0  # conflicts ignored by ON CONFLICT DO NOTHING


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str] | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier from a schema descriptor)
    columns: insert columns
    rows: row tuples, parallel to ``columns``
    conflict_columns: unique columns; conflicting rows are skipped, not errors
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the statement ran (not
        invoked for an empty ``rows``)

    Raises
    ------
    BatchInsertError
        wraps any driver error
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(quote_ident(c) for c in columns)
    base_sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"
    if conflict_columns:
        conflict_sql = ",".join(quote_ident(c) for c in conflict_columns)
        base_sql += f" ON CONFLICT ({conflict_sql}) DO NOTHING RETURNING 1"

    start_time = time.time()
    try:
        if conflict_columns:
            returned = execute_values(cursor, base_sql, rows_list, page_size=page_size, fetch=True)
        else:
            execute_values(cursor, base_sql, rows_list, page_size=page_size)
            returned = None
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    if returned is None:
        return InsertResult(inserted_rows=len(rows_list))
    inserted = len(returned)
    return InsertResult(inserted_rows=inserted, skipped_rows=len(rows_list) - inserted)
