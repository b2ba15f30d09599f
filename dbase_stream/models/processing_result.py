from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Export result models.

FileStat describes one exported table, ProcessingResult aggregates a whole
run and feeds the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-table export statistics."""
    file_name: str
    status: str  # success/failed
    records: int  # records written
    deleted_records: int  # written records flagged deleted (or skipped when skip_deleted)
    invalid_records: int  # records with field or memo errors
    elapsed_seconds: float
    output: str | None = None  # output file path
    error: str | None = None  # failure reason


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results of an export run."""
    success_files: int
    failed_files: int
    total_records: int
    deleted_records: int
    invalid_records: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float  # end - start
    throughput_rows_per_sec: float  # total_records / elapsed
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files
