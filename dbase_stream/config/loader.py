from __future__ import annotations

import codecs
import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from dbase_stream.models.config_models import (
    DEFAULT_MEMO_SCAN_LIMIT,
    DuplicateNamePolicy,
    ExportConfig,
    FieldErrorPolicy,
    ReaderOptions,
    UnknownTypePolicy,
)

"""Config loader for the export CLI.

Responsibilities:
- Load YAML (default config/export.yml)
- Validate against export_schema.json shipped next to this module
- Apply defaults (format=jsonl, ReaderOptions defaults)
- Build ExportConfig / ReaderOptions
"""

SCHEMA_PATH = Path(__file__).parent / "export_schema.json"
DEFAULT_CONFIG_PATH = Path("config/export.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def build_reader_options(raw: dict[str, Any] | None) -> ReaderOptions:
    """Map the ``reader`` section onto ReaderOptions (missing keys keep defaults)."""
    raw = raw or {}
    encoding = raw.get("encoding", "latin-1")
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ConfigError(f"unknown encoding: {encoding}") from e
    return ReaderOptions(
        encoding=encoding,
        skip_deleted=raw.get("skip_deleted", False),
        field_errors=FieldErrorPolicy(raw.get("field_errors", FieldErrorPolicy.RAISE.value)),
        unknown_field_types=UnknownTypePolicy(raw.get("unknown_field_types", UnknownTypePolicy.ERROR.value)),
        duplicate_names=DuplicateNamePolicy(raw.get("duplicate_names", DuplicateNamePolicy.ERROR.value)),
        memo_scan_limit=raw.get("memo_scan_limit", DEFAULT_MEMO_SCAN_LIMIT),
        memo_cache_size=raw.get("memo_cache_size", 0),
    )


def load_config(path: Path) -> ExportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    return ExportConfig(
        source_directory=data["source_directory"],
        output_directory=data["output_directory"],
        format=data.get("format", "jsonl"),
        reader=build_reader_options(data.get("reader")),
    )
