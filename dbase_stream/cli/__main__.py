from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from dbase_stream.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from dbase_stream.dbf.errors import DbfError
from dbase_stream.dbf.files import open_path
from dbase_stream.logging.init import log_summary, setup_logging
from dbase_stream.models.config_models import ExportConfig
from dbase_stream.services.export import ExportError, export_all, plain_value, scan_dbf_files
from dbase_stream.services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (may set DBASE_STREAM_CONFIG)
- Load config (default config/export.yml)
- Export every .dbf in source_directory to output_directory
- Print the SUMMARY line, exit 0 / 2 (some table or record failed) / 1 (fatal)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CONFIG_ENV = "DBASE_STREAM_CONFIG"
INSPECT_ROWS = 3


def _load_env_file(path: Path) -> None:
    """Load .env without overriding variables already set in the process."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="dBase / FoxPro .dbf -> JSON Lines / CSV exporter")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: ${CONFIG_ENV} or {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print header, schema & first rows then exit")
    return p.parse_args(argv)


def _inspect_data(cfg: ExportConfig) -> int:
    directory = Path(cfg.source_directory)
    try:
        files = scan_dbf_files(directory)
    except ExportError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no .dbf files")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            table = open_path(f, options=cfg.reader)
        except (DbfError, OSError) as e:
            print(f"  open_error: {e}")
            continue
        with table:
            h = table.header
            print(
                f"  HEADER: version=0x{h.version:02X} dialect={h.dialect.value} memo={h.memo_dialect.value} "
                f"records={h.record_count} last_update={h.last_update}"
            )
            for fd in table.fields:
                print(f"  FIELD: {fd.name} {fd.type_tag}({fd.length},{fd.decimal_count}) offset={fd.offset}")
            rows = table.rows()
            for _ in range(INSPECT_ROWS):
                try:
                    record = next(rows)
                except StopIteration:
                    break
                except DbfError as e:
                    print(f"    row_error: {e}")
                    continue
                safe = {k: plain_value(v) for k, v in record.as_dict().items()}
                print(f"    row[{record.index}] deleted={record.deleted} {safe}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None のときのみ sys.argv を読む ([] はテストからの明示的な空引数)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"))

    if args.debug:
        logger.debug("debug mode enabled")

    config_path = args.config or Path(os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    directory = Path(cfg.source_directory)
    if not directory.exists():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    logger.info(f"Exporting tables from: {directory} -> {cfg.output_directory} ({cfg.format})")
    try:
        result = export_all(cfg)
    except ExportError as e:
        logger.error(f"export: {e}")
        return EXIT_FATAL

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])

    if result.failed_files > 0 or result.invalid_records > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
