from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from ..schemas import ImportSchema, ImportType, get_schema, schema_for_record
from .batch_insert import batch_insert, quote_ident

"""Storage contract and its PostgreSQL implementation.

One table per import type. Text fields are TEXT, date fields DATE and the
import timestamp TIMESTAMPTZ; each table carries a UNIQUE constraint on the
schema's storage columns so re-imports skip rows already stored.
"""

__all__ = [
    "RecordStore",
    "PostgresRecordStore",
    "table_columns",
    "create_table_sql",
]

logger = logging.getLogger(__name__)

PROVENANCE_COLUMNS: tuple[str, ...] = ("import_date", "import_set")


class RecordStore(Protocol):
    def save(self, records: Sequence[Any]) -> tuple[int, int]: ...

    def fetch(self, import_type: ImportType | str, limit: int = 1000, offset: int = 0) -> list[Any]: ...

    def clear(self, import_type: ImportType | str) -> None: ...


def table_columns(schema: ImportSchema) -> tuple[str, ...]:
    return tuple(f.name for f in schema.fields) + PROVENANCE_COLUMNS


def create_table_sql(schema: ImportSchema) -> str:
    defs = ["id BIGSERIAL PRIMARY KEY"]
    for f in schema.fields:
        defs.append(f"{quote_ident(f.name)} {'DATE' if f.is_date else 'TEXT'}")
    defs.append(f"{quote_ident('import_date')} TIMESTAMPTZ NOT NULL")
    defs.append(f"{quote_ident('import_set')} TEXT NOT NULL")
    unique = ",".join(quote_ident(c) for c in schema.unique_columns)
    defs.append(f"UNIQUE ({unique})")
    body = ",\n    ".join(defs)
    return f"CREATE TABLE IF NOT EXISTS {quote_ident(schema.table_name)} (\n    {body}\n)"


class PostgresRecordStore:
    """RecordStore over a psycopg2 cursor.

    The caller owns the connection and its transaction; each ``save`` runs
    inside a savepoint so a failing batch does not poison the ones committed
    before it.
    """

    def __init__(self, cursor: Any, *, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.page_size = page_size
        self._ensured: set[ImportType] = set()

    def ensure_table(self, import_type: ImportType | str) -> None:
        schema = get_schema(import_type)
        if schema.import_type in self._ensured:
            return
        self.cursor.execute(create_table_sql(schema))
        self._ensured.add(schema.import_type)

    def save(self, records: Sequence[Any]) -> tuple[int, int]:
        if not records:
            return 0, 0
        schema = schema_for_record(records[0])
        if any(not isinstance(r, schema.record_type) for r in records):
            raise TypeError("a batch must hold records of a single import type")
        self.ensure_table(schema.import_type)
        columns = table_columns(schema)
        rows = [tuple(getattr(r, c) for c in columns) for r in records]
        self.cursor.execute("SAVEPOINT intake_batch")
        try:
            result = batch_insert(
                self.cursor,
                schema.table_name,
                columns,
                rows,
                conflict_columns=schema.unique_columns,
                page_size=self.page_size,
                metrics_callback=lambda m: logger.debug(
                    "table=%s rows=%d elapsed=%.3fs", schema.table_name, m.batch_size, m.elapsed_seconds
                ),
            )
        except Exception:
            self.cursor.execute("ROLLBACK TO SAVEPOINT intake_batch")
            raise
        self.cursor.execute("RELEASE SAVEPOINT intake_batch")
        logger.debug(
            "table=%s inserted=%d skipped=%d", schema.table_name, result.inserted_rows, result.skipped_rows
        )
        return result.inserted_rows, result.skipped_rows

    def fetch(self, import_type: ImportType | str, limit: int = 1000, offset: int = 0) -> list[Any]:
        schema = get_schema(import_type)
        self.ensure_table(schema.import_type)
        columns = table_columns(schema)
        cols_sql = ",".join(quote_ident(c) for c in columns)
        order_sql = ",".join(quote_ident(c) for c in schema.unique_columns)
        self.cursor.execute(
            f"SELECT {cols_sql} FROM {quote_ident(schema.table_name)} ORDER BY {order_sql} LIMIT %s OFFSET %s",
            (limit, offset),
        )
        return [schema.record_type(**dict(zip(columns, row))) for row in self.cursor.fetchall()]

    def clear(self, import_type: ImportType | str) -> None:
        schema = get_schema(import_type)
        self.ensure_table(schema.import_type)
        self.cursor.execute(f"DELETE FROM {quote_ident(schema.table_name)}")
