from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from dbase_stream.models.error_record import ErrorRecord

"""Error log buffering.

Decoding problems found during an export are collected as ErrorRecord
instances and appended to ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC, one JSON
object per line) on flush. The file is created lazily on the first flush
with pending records, so a clean run leaves no log file behind.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Pending error records of one export run.

    ``total`` and ``by_type`` count every record appended since creation,
    flushed or not. Single-threaded use only.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._logs_dir = logs_dir or LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self.by_type: Counter[str] = Counter()

    @property
    def total(self) -> int:
        return sum(self.by_type.values())

    @property
    def file_path(self) -> Path:
        """Log file of this run (name fixed on first access)."""
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)
        self.by_type[record.error_type] += 1

    def __len__(self) -> int:
        return len(self._pending)

    def type_breakdown(self) -> str:
        """``TYPE=count`` pairs, most frequent first (empty string when clean)."""
        return " ".join(f"{t}={n}" for t, n in self.by_type.most_common())

    def flush(self) -> Path | None:
        """Append pending records to the log file.

        Returns:
            The log file path, or None when nothing has been logged yet.
        """
        if not self._pending:
            return self._file_path
        lines = "".join(r.to_json_line() + "\n" for r in self._pending)
        with self.file_path.open("a", encoding="utf-8") as f:
            f.write(lines)
        self._pending.clear()
        return self._file_path
