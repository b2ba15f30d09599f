from __future__ import annotations

import base64
import datetime
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, TextIO

from ..dbf.errors import DbfError, FieldDecodeError, MemoResolutionError, TruncationError
from ..dbf.files import open_path
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ExportConfig, ReaderOptions
from ..models.error_record import ErrorRecord
from ..models.processing_result import FileStat, ProcessingResult
from ..models.record import Record
from .frame import record_frame
from .progress import ProgressTracker, TableProgressIndicator

"""Export orchestration: a directory of .dbf tables -> JSON Lines / CSV files.

Each table is exported independently. Field and memo errors are written to
the error log and counted; the record is still written under the MARK policy
and skipped under RAISE. Structural and truncation errors fail that table and
the run continues with the next one.
"""

logger = logging.getLogger(__name__)

FORMATS = ("jsonl", "csv")
CSV_CHUNK_SIZE = 1000


class ExportError(Exception):
    """Fatal export error (directory missing, unsupported format)."""


def scan_dbf_files(directory: Path) -> list[Path]:
    """List .dbf files (any case) directly inside ``directory``, sorted by name.

    Raises:
        ExportError: the directory does not exist or cannot be read
    """
    if not directory.exists():
        raise ExportError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ExportError(f"Path is not a directory: {directory}")
    try:
        return sorted(
            (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".dbf"),
            key=lambda p: p.name,
        )
    except OSError as e:
        raise ExportError(f"Error reading directory {directory}: {e}") from e


def plain_value(value: Any) -> Any:
    """Convert a decoded value to a JSON/CSV friendly scalar."""
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


class _JsonlWriter:
    def __init__(self, fh: TextIO, columns: list[str]) -> None:
        self.fh = fh
        self.columns = columns

    def write(self, record: Record) -> None:
        line = {
            "record": record.index,
            "deleted": record.deleted,
            "values": {c: plain_value(record.value_of(c)) for c in self.columns},
        }
        self.fh.write(json.dumps(line, ensure_ascii=False) + "\n")

    def close(self) -> None:
        pass


class _CsvWriter:
    """Buffers records and writes them through pandas in chunks."""

    def __init__(self, fh: TextIO, columns: list[str], chunksize: int = CSV_CHUNK_SIZE) -> None:
        self.fh = fh
        self.columns = columns
        self.chunksize = chunksize
        self._pending: list[Record] = []
        self._header_written = False

    def write(self, record: Record) -> None:
        self._pending.append(record)
        if len(self._pending) >= self.chunksize:
            self._flush()

    def _flush(self) -> None:
        if not self._pending and self._header_written:
            return
        frame = record_frame(self._pending, self.columns, convert=plain_value)
        frame.to_csv(self.fh, header=not self._header_written, index=False)
        self._header_written = True
        self._pending = []

    def close(self) -> None:
        self._flush()


def _log_error(error_log: ErrorLogBuffer, file_name: str, exc: BaseException) -> None:
    error_log.append(ErrorRecord.from_exception(file_name, exc))


def export_table(
    path: Path,
    output_dir: Path,
    fmt: str,
    options: ReaderOptions,
    error_log: ErrorLogBuffer,
) -> FileStat:
    """Export one table. Never raises for decoding problems; see FileStat.status."""
    if fmt not in FORMATS:
        raise ExportError(f"unsupported format: {fmt}")
    start = datetime.datetime.now(datetime.UTC)

    def _elapsed() -> float:
        return (datetime.datetime.now(datetime.UTC) - start).total_seconds()

    try:
        table = open_path(path, options=options)
    except (DbfError, OSError) as e:
        logger.error(f"{path.name}: cannot open table: {e}")
        _log_error(error_log, path.name, e)
        return FileStat(
            file_name=path.name,
            status="failed",
            records=0,
            deleted_records=0,
            invalid_records=0,
            elapsed_seconds=_elapsed(),
            error=str(e),
        )

    written = deleted = invalid = 0
    failure: str | None = None
    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"{path.stem}.{fmt}"
    indicator = TableProgressIndicator(path.name, table.record_count)

    with table, out_path.open("w", encoding="utf-8", newline="") as fh:
        columns = list(dict.fromkeys(table.field_names))
        writer = _JsonlWriter(fh, columns) if fmt == "jsonl" else _CsvWriter(fh, columns)
        rows = table.rows()
        indicator.start()
        while True:
            try:
                record = next(rows)
            except StopIteration:
                break
            except (FieldDecodeError, MemoResolutionError) as e:
                # RAISE policy: record skipped, iteration continues
                invalid += 1
                indicator.advance()
                logger.debug(f"{path.name}: {e}")
                _log_error(error_log, path.name, e)
                continue
            except TruncationError as e:
                failure = str(e)
                logger.error(f"{path.name}: {e}")
                _log_error(error_log, path.name, e)
                break
            indicator.advance()
            if record.errors:
                invalid += 1
                for err in record.errors:
                    _log_error(error_log, path.name, err)
            if record.deleted:
                deleted += 1
            writer.write(record)
            written += 1
        writer.close()
        indicator.finish(success=failure is None)

    logger.info(
        f"{path.name}: records={written} deleted={deleted} invalid={invalid} -> {out_path}"
    )
    return FileStat(
        file_name=path.name,
        status="failed" if failure else "success",
        records=written,
        deleted_records=deleted,
        invalid_records=invalid,
        elapsed_seconds=_elapsed(),
        output=str(out_path),
        error=failure,
    )


def export_all(config: ExportConfig, error_log: ErrorLogBuffer | None = None) -> ProcessingResult:
    """Export every table in ``config.source_directory``.

    Raises:
        ExportError: missing source directory or unsupported format
    """
    if config.format not in FORMATS:
        raise ExportError(f"unsupported format: {config.format}")
    start_time = datetime.datetime.now(datetime.UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    file_paths = scan_dbf_files(Path(config.source_directory))
    output_dir = Path(config.output_directory)

    file_stats: list[FileStat] = []
    with ProgressTracker(len(file_paths)) as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            stat = export_table(file_path, output_dir, config.format, config.reader, error_log)
            file_stats.append(stat)
            progress.set_postfix(
                records=sum(s.records for s in file_stats),
                failed=sum(1 for s in file_stats if s.status == "failed"),
            )
            progress.finish_file(success=stat.status == "success")

    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"error log flush failed: {e}")
    else:
        if log_path is not None and error_log.total:
            logger.info(f"{error_log.total} errors logged to {log_path} ({error_log.type_breakdown()})")

    end_time = datetime.datetime.now(datetime.UTC)
    elapsed = (end_time - start_time).total_seconds()
    total_records = sum(s.records for s in file_stats)
    return ProcessingResult(
        success_files=sum(1 for s in file_stats if s.status == "success"),
        failed_files=sum(1 for s in file_stats if s.status == "failed"),
        total_records=total_records,
        deleted_records=sum(s.deleted_records for s in file_stats),
        invalid_records=sum(s.invalid_records for s in file_stats),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=total_records / elapsed if elapsed > 0 else 0.0,
        file_stats=file_stats,
    )
