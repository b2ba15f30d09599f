from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any

import pandas as pd

from ..dbf.files import open_path
from ..dbf.table import Table
from ..models.config_models import ReaderOptions
from ..models.record import Record

"""pandas conversion helpers.

Records are turned into DataFrames chunk by chunk so a large table never has
to be fully materialized as Record objects; ``read_dataframe`` concatenates
the chunks for callers that do want the whole table in memory.
"""

__all__ = [
    "INDEX_COLUMN",
    "DELETED_COLUMN",
    "record_frame",
    "iter_dataframes",
    "read_dataframe",
]

INDEX_COLUMN = "_record"
DELETED_COLUMN = "_deleted"


def record_frame(
    records: Iterable[Record],
    columns: list[str],
    *,
    convert: Callable[[Any], Any] | None = None,
) -> pd.DataFrame:
    """Build a DataFrame from records.

    Parameters
    ----------
    records: decoded records
    columns: field names, in table order
    convert: optional per-value conversion (e.g. for CSV output)
    """
    rows: list[list[Any]] = []
    for record in records:
        values = [record.value_of(c) for c in columns]
        if convert is not None:
            values = [convert(v) for v in values]
        rows.append([record.index, record.deleted, *values])
    frame = pd.DataFrame(rows, columns=[INDEX_COLUMN, DELETED_COLUMN, *columns], dtype=object)
    if not frame.empty:
        frame[INDEX_COLUMN] = frame[INDEX_COLUMN].astype("int64")
        frame[DELETED_COLUMN] = frame[DELETED_COLUMN].astype(bool)
    return frame


def _unique_columns(table: Table) -> list[str]:
    # 重複名 (last_wins) は一列にまとめる
    return list(dict.fromkeys(table.field_names))


def iter_dataframes(table: Table, chunksize: int = 10_000) -> Iterator[pd.DataFrame]:
    """Yield DataFrames of at most ``chunksize`` records from ``table.rows()``.

    Decoding errors propagate; use FieldErrorPolicy.MARK to keep invalid
    fields as raw bytes instead.
    """
    if chunksize < 1:
        raise ValueError("chunksize must be positive")
    columns = _unique_columns(table)
    chunk: list[Record] = []
    for record in table.rows():
        chunk.append(record)
        if len(chunk) >= chunksize:
            yield record_frame(chunk, columns)
            chunk = []
    if chunk:
        yield record_frame(chunk, columns)


def read_dataframe(
    path: str | Path,
    options: ReaderOptions | None = None,
    *,
    chunksize: int = 10_000,
) -> pd.DataFrame:
    """Read a whole table into one DataFrame (record index and deleted flag included)."""
    with open_path(path, options=options) as table:
        frames = list(iter_dataframes(table, chunksize))
        if not frames:
            return record_frame([], _unique_columns(table))
    return pd.concat(frames, ignore_index=True)
