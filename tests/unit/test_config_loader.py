from __future__ import annotations

from pathlib import Path

import pytest

from dbase_stream.config.loader import ConfigError, build_reader_options, load_config
from dbase_stream.models.config_models import (
    DEFAULT_MEMO_SCAN_LIMIT,
    DuplicateNamePolicy,
    FieldErrorPolicy,
    UnknownTypePolicy,
)


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_directory == "./data"
    assert cfg.output_directory == "./out"
    assert cfg.format == "jsonl"
    assert cfg.reader.encoding == "latin-1"
    assert cfg.reader.field_errors is FieldErrorPolicy.MARK
    assert cfg.reader.skip_deleted is False


def test_load_config_defaults(temp_workdir: Path):
    cfg_path = temp_workdir / "config" / "export.yml"
    cfg_path.write_text("source_directory: ./data\noutput_directory: ./out\n", encoding="utf-8")
    cfg = load_config(cfg_path)
    assert cfg.format == "jsonl"
    assert cfg.reader.field_errors is FieldErrorPolicy.RAISE
    assert cfg.reader.unknown_field_types is UnknownTypePolicy.ERROR
    assert cfg.reader.duplicate_names is DuplicateNamePolicy.ERROR
    assert cfg.reader.memo_scan_limit == DEFAULT_MEMO_SCAN_LIMIT
    assert cfg.reader.memo_cache_size == 0


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(missing)


def test_load_config_missing_required(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("output_directory: ./out\n", "")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    # additionalProperties: false
    text = write_config.read_text(encoding="utf-8") + "extra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(write_config)


@pytest.mark.parametrize(
    "reader_line",
    [
        "  field_errors: ignore\n",
        "  memo_scan_limit: 0\n",
        "  skip_deleted: maybe\n",
        "  colour: blue\n",
    ],
)
def test_load_config_invalid_reader_section(write_config: Path, reader_line: str):
    write_config.write_text(write_config.read_text(encoding="utf-8") + reader_line, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(write_config)


def test_load_config_unknown_format(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("format: jsonl", "format: xlsx")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_load_config_invalid_yaml(temp_workdir: Path):
    cfg_path = temp_workdir / "config" / "export.yml"
    cfg_path.write_text("source_directory: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(cfg_path)


def test_load_config_top_level_list(temp_workdir: Path):
    cfg_path = temp_workdir / "config" / "export.yml"
    cfg_path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="top level must be a mapping"):
        load_config(cfg_path)


def test_build_reader_options_full():
    opts = build_reader_options(
        {
            "encoding": "cp437",
            "skip_deleted": True,
            "field_errors": "mark",
            "unknown_field_types": "raw",
            "duplicate_names": "last_wins",
            "memo_scan_limit": 4096,
            "memo_cache_size": 16,
        }
    )
    assert opts.encoding == "cp437"
    assert opts.skip_deleted is True
    assert opts.field_errors is FieldErrorPolicy.MARK
    assert opts.unknown_field_types is UnknownTypePolicy.RAW
    assert opts.duplicate_names is DuplicateNamePolicy.LAST_WINS
    assert opts.memo_scan_limit == 4096
    assert opts.memo_cache_size == 16


def test_build_reader_options_unknown_encoding():
    with pytest.raises(ConfigError, match="unknown encoding"):
        build_reader_options({"encoding": "no-such-codec"})
