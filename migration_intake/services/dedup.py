from __future__ import annotations

from typing import Any

from ..schemas.base import ImportSchema

"""In-import duplicate detection by natural key."""

__all__ = ["Deduplicator"]


class Deduplicator:
    """Remembers natural keys of accepted records within one import run.

    Only validated records should be offered; invalid rows never occupy a key.
    """

    def __init__(self, schema: ImportSchema) -> None:
        self.schema = schema
        self._key = schema.natural_key
        self._seen: set[tuple[str, ...]] = set()

    def key_of(self, record: Any) -> tuple[str, ...] | None:
        return self._key(record) if self._key is not None else None

    def check(self, record: Any) -> str | None:
        """Return a duplicate message when the key was seen, else remember it."""
        key = self.key_of(record)
        if key is None:
            return None
        if key in self._seen:
            return self.schema.duplicate_message(record)
        self._seen.add(key)
        return None

    def __len__(self) -> int:
        return len(self._seen)
