from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..excel.dates import DEFAULT_DATE_FORMATS

"""Import configuration loader.

Responsibilities:
- Load the optional YAML file (config/import.yml by default)
- Validate it against the bundled JSON schema (config_schema.json)
- Apply defaults for every missing key
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportSettings",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

DEFAULT_BATCH_SIZE = 5000
DEFAULT_PROGRESS_INTERVAL = 50


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection fallbacks; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    batch_size: int = DEFAULT_BATCH_SIZE  # persistence chunk size
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL  # rows between progress text updates
    strict_dates: bool = False  # undecodable optional dates become errors
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    logs_directory: Path = Path("./logs")
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file unreadable, or data violates the schema
    """
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    try:
        jsonschema.validate(data, schema)
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        detail = f"{location}: {e.message}" if location else e.message
        raise ConfigError(f"config validation failed: {detail}") from e


def load_config(path: Path | None = None, *, required: bool = True) -> ImportSettings:
    """Load import settings.

    Args:
        path: YAML file; None means DEFAULT_CONFIG_PATH
        required: when False a missing file yields default settings

    Raises:
        ConfigError: missing file (when required), invalid YAML, schema violation
    """
    cfg_path = path if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        if not required:
            return ImportSettings()
        raise ConfigError(f"config file not found: {cfg_path}")
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top-level document must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportSettings(
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        progress_interval=data.get("progress_interval", DEFAULT_PROGRESS_INTERVAL),
        strict_dates=data.get("strict_dates", False),
        date_formats=tuple(data.get("date_formats", DEFAULT_DATE_FORMATS)),
        logs_directory=Path(data.get("logs_directory", "./logs")),
        database=db,
    )
