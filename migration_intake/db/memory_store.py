from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..schemas import ImportType, get_schema, schema_for_record

"""In-memory record store.

Used by tests and by the CLI when no database is reachable (mock mode).
Enforces the same storage-level uniqueness as the PostgreSQL tables.
"""

__all__ = ["InMemoryRecordStore"]


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._tables: dict[ImportType, dict[tuple[Any, ...], Any]] = {}
        self.save_calls = 0

    def save(self, records: Sequence[Any]) -> tuple[int, int]:
        self.save_calls += 1
        saved = skipped = 0
        for record in records:
            schema = schema_for_record(record)
            table = self._tables.setdefault(schema.import_type, {})
            key = tuple(getattr(record, c) for c in schema.unique_columns)
            if key in table:
                skipped += 1
                continue
            table[key] = record
            saved += 1
        return saved, skipped

    def fetch(self, import_type: ImportType | str, limit: int = 1000, offset: int = 0) -> list[Any]:
        schema = get_schema(import_type)
        table = self._tables.get(schema.import_type, {})
        ordered = [table[k] for k in sorted(table)]
        return ordered[offset:offset + limit]

    def clear(self, import_type: ImportType | str) -> None:
        self._tables.pop(get_schema(import_type).import_type, None)

    def count(self, import_type: ImportType | str) -> int:
        return len(self._tables.get(get_schema(import_type).import_type, {}))
