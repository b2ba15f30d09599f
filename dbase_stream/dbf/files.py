from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path

from ..models.config_models import ReaderOptions
from .header import HEADER_SIZE, MemoDialect, parse_header
from .table import Table, open_table

"""Filesystem access for dbf tables.

open_path() opens a .dbf file and, when the header announces one, its memo
companion (same stem, .dbt or .fpt). Lookups are case-insensitive because
dBase era files are often shipped as FOO.DBF + foo.dbt.
"""

__all__ = [
    "MEMO_SUFFIXES",
    "find_memo_file",
    "open_path",
]

logger = logging.getLogger(__name__)

MEMO_SUFFIXES: dict[MemoDialect, str] = {
    MemoDialect.DBT: ".dbt",
    MemoDialect.FPT: ".fpt",
}


def find_memo_file(table_path: Path, dialect: MemoDialect) -> Path | None:
    """Locate the memo companion of ``table_path`` for the given dialect."""
    suffix = MEMO_SUFFIXES.get(dialect)
    if suffix is None:
        return None
    exact = table_path.with_suffix(suffix)
    if exact.exists():
        return exact
    stem = table_path.stem.lower()
    directory = table_path.parent
    if not directory.is_dir():
        return None
    for candidate in directory.iterdir():
        if candidate.is_file() and candidate.stem.lower() == stem and candidate.suffix.lower() == suffix:
            return candidate
    return None


def open_path(
    path: str | Path,
    memo_path: str | Path | None = None,
    options: ReaderOptions | None = None,
) -> Table:
    """Open a table file from disk.

    The returned Table owns the opened files; use it as a context manager or
    call close(). If opening fails, every file opened here is closed again.

    Parameters
    ----------
    path: .dbf file path
    memo_path: explicit memo file path (default: looked up next to ``path``)
    options: decoding policies
    """
    table_path = Path(path)
    with ExitStack() as stack:
        stream = stack.enter_context(table_path.open("rb"))
        header = parse_header(stream.read(HEADER_SIZE))

        memo_stream = None
        if memo_path is None and header.has_memo:
            found = find_memo_file(table_path, header.memo_dialect)
            if found is None:
                logger.warning(
                    f"{table_path.name}: memo file ({MEMO_SUFFIXES[header.memo_dialect]}) not found"
                )
            memo_path = found
        if memo_path is not None:
            memo_stream = stack.enter_context(Path(memo_path).open("rb"))

        table = open_table(stream, memo_stream, options, name=table_path.name)
        # 成功時のみ所有権を Table へ移す
        stack.pop_all()
    return table
