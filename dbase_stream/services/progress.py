from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

- ProgressTracker: outer bar over the tables of an export run
- TableProgressIndicator: inner, transient bar over the records of one table

Both stay silent when stdout is not a TTY so CI logs are free of control
sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
    "TableProgressIndicator",
]

BAR_WIDTH = 80


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Table-level progress bar for an export run."""

    def __init__(self, total_files: int, *, description: str = "Exporting tables") -> None:
        self.total_files = total_files
        self.description = description
        self.current_file = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_files,
                desc=description,
                unit="file",
                disable=False,
                leave=True,
                position=0,
                ncols=BAR_WIDTH,
                ascii=True,
            )

    def start_file(self, file_path: Path) -> None:
        self.current_file += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({file_path.name})")

    def finish_file(self, success: bool = True) -> None:
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class TableProgressIndicator:
    """Record bar for one table, sized by the header's declared record count.

    Tables can hold millions of records, so the bar is only touched every
    ``refresh_every`` records; the count itself is always exact.
    """

    def __init__(self, file_name: str, declared_records: int, *, refresh_every: int = 1000) -> None:
        self.file_name = file_name
        self.declared_records = declared_records
        self.refresh_every = refresh_every
        self.records_read = 0
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        self._unreported = 0

    def start(self) -> None:
        if self.enabled:
            self.pbar = tqdm(
                total=self.declared_records,
                desc=f"  {self.file_name}",
                unit="rec",
                leave=False,
                position=1,
                ncols=BAR_WIDTH,
                ascii=True,
            )

    def advance(self, count: int = 1) -> None:
        self.records_read += count
        if self.pbar is None:
            return
        self._unreported += count
        if self._unreported >= self.refresh_every:
            self.pbar.update(self._unreported)
            self._unreported = 0

    def finish(self, success: bool = True) -> None:
        if self.pbar is None:
            return
        if self._unreported:
            self.pbar.update(self._unreported)
            self._unreported = 0
        self.pbar.set_postfix(status="ok" if success else "failed")
        self.pbar.close()
        self.pbar = None
