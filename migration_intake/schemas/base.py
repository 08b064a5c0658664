from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any

"""Schema descriptors driving the generic import pipeline.

An ImportSchema bundles everything that differs between import types: the
accepted header spellings per canonical field, which fields are required or
date-typed, known vocabularies, the natural key used for in-import
deduplication, the record class to build, and the storage table layout.
"""

__all__ = [
    "ImportType",
    "FieldSpec",
    "ImportSchema",
    "normalize_header",
    "fold_text",
]

_NON_ALNUM_RE = re.compile(r"[\W_]+", re.UNICODE)


class ImportType(str, Enum):
    """Closed set of import selectors."""
    IDENTITY_GROUP = "identity-group"
    PERSONNEL = "personnel"
    PACKAGING = "packaging"
    TESTING = "testing"
    MIGRATION = "migration"
    CLUSTER = "cluster"


def normalize_header(text: str) -> str:
    """Case-fold and drop whitespace/punctuation: "System_Account " -> "systemaccount"."""
    return _NON_ALNUM_RE.sub("", text.casefold())


def fold_text(text: str) -> str:
    """Case-fold and collapse internal whitespace (natural-key comparison form)."""
    return " ".join(text.split()).casefold()


@dataclass(frozen=True)
class FieldSpec:
    name: str  # record attribute / canonical field name
    label: str  # lower-case human label used in messages
    variants: tuple[str, ...]  # accepted header spellings
    required: bool = False
    is_date: bool = False
    vocabulary: frozenset[str] | None = None  # known values, compared case-folded

    def is_known_value(self, value: str) -> bool:
        if self.vocabulary is None:
            return True
        return fold_text(value) in {fold_text(v) for v in self.vocabulary}


@dataclass(frozen=True)
class ImportSchema:
    import_type: ImportType
    title: str
    import_set_prefix: str  # "IdentityGroup" -> "IdentityGroup_Import_20250101_120000"
    record_type: type
    fields: tuple[FieldSpec, ...]
    primary_field: str  # header row is recognised by this field
    key_fields: tuple[str, ...]  # natural key fields (empty = no dedup)
    key_fold: bool  # compare key values case/whitespace-folded
    table_name: str
    unique_columns: tuple[str, ...]  # storage-level uniqueness

    def field(self, name: str) -> FieldSpec:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    @cached_property
    def header_lookup(self) -> dict[str, str]:
        """normalized header variant -> canonical field name."""
        lookup: dict[str, str] = {}
        for f in self.fields:
            for variant in (f.name, *f.variants):
                lookup.setdefault(normalize_header(variant), f.name)
        return lookup

    @cached_property
    def primary_variants(self) -> frozenset[str]:
        return frozenset(k for k, v in self.header_lookup.items() if v == self.primary_field)

    @property
    def date_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.is_date)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    @property
    def natural_key(self) -> Callable[[Any], tuple[str, ...]] | None:
        """Key extractor for a record, or None when the schema keeps every row."""
        if not self.key_fields:
            return None
        fold = self.key_fold

        def extract(record: Any) -> tuple[str, ...]:
            values = tuple(getattr(record, name) for name in self.key_fields)
            return tuple(fold_text(v) for v in values) if fold else values

        return extract

    def canonical_header(self, header: str) -> str:
        """Canonical field for a header cell, or its own normalized text when unknown."""
        normalized = normalize_header(header)
        return self.header_lookup.get(normalized, normalized)

    def duplicate_message(self, record: Any) -> str:
        parts = [f"{self.field(name).label} '{getattr(record, name)}'" for name in self.key_fields]
        if len(parts) > 1:
            return "Duplicate combination of " + " and ".join(parts)
        return f"Duplicate {parts[0]}"

    def import_set_for(self, stamp: str) -> str:
        return f"{self.import_set_prefix}_Import_{stamp}"
