"""Import schema descriptors.

``get_schema("identity-group")`` returns the descriptor the pipeline is
parameterized with.
"""

from .base import FieldSpec, ImportSchema, ImportType, fold_text, normalize_header
from .catalog import CLUSTER, IDENTITY_GROUP, MIGRATION, PACKAGING, PERSONNEL, SCHEMAS, TESTING

__all__ = [
    "FieldSpec",
    "ImportSchema",
    "ImportType",
    "fold_text",
    "normalize_header",
    "get_schema",
    "schema_for_record",
    "SCHEMAS",
    "IDENTITY_GROUP",
    "PERSONNEL",
    "PACKAGING",
    "TESTING",
    "MIGRATION",
    "CLUSTER",
]


def get_schema(import_type: ImportType | str) -> ImportSchema:
    """Resolve an import selector to its schema.

    Raises:
        ValueError: unknown selector
    """
    try:
        return SCHEMAS[ImportType(import_type)]
    except ValueError:
        choices = ", ".join(t.value for t in ImportType)
        raise ValueError(f"unknown import type '{import_type}' (expected one of: {choices})") from None


def schema_for_record(record: object) -> ImportSchema:
    """Schema whose record type built ``record``."""
    for schema in SCHEMAS.values():
        if isinstance(record, schema.record_type):
            return schema
    raise TypeError(f"no import schema for {type(record).__name__}")
