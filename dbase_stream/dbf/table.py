from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import replace
from typing import Any, BinaryIO

from ..models.config_models import ReaderOptions
from ..models.record import Record
from .errors import StructuralError, TableStateError, TruncationError
from .fields import FieldDescriptor, parse_field_descriptors
from .header import HEADER_SIZE, TableHeader, family_memo_dialect, parse_header
from .memo import MemoResolver, open_memo
from .record import DELETED, RecordDecoder

"""Table handle and streaming row iterator.

open_table() parses the header region and returns a Table that owns the table
stream and the optional memo stream. Table.rows() yields one Record per stored
record, reading a single record-length buffer per step, so memory use does not
grow with the table size.
"""

__all__ = [
    "Table",
    "RowIterator",
    "open_table",
]

logger = logging.getLogger(__name__)


class RowIterator:
    """Linear, single-pass iterator over the records of a Table.

    The index advances before a record is decoded, so a FieldDecodeError or
    MemoResolutionError raised from ``next()`` leaves the iterator positioned
    on the following record. A TruncationError ends the sequence.
    """

    def __init__(self, table: Table) -> None:
        self._stream = table.stream
        self._decoder = table.decoder
        self._record_length = table.header.record_length
        self._count = table.header.record_count
        self._skip_deleted = table.options.skip_deleted
        self._index = 0
        self._done = False

    @property
    def position(self) -> int:
        """Index of the next record to be read."""
        return self._index

    @property
    def exhausted(self) -> bool:
        return self._done

    def __iter__(self) -> RowIterator:
        return self

    def __next__(self) -> Record:
        while True:
            if self._done or self._index >= self._count:
                self._done = True
                raise StopIteration
            index = self._index
            data = self._stream.read(self._record_length)
            if len(data) < self._record_length:
                self._done = True
                raise TruncationError(index, self._record_length, len(data))
            self._index += 1
            if self._skip_deleted and data[0] == DELETED:
                continue
            return self._decoder.decode(data, index)


class Table:
    """An open dbf table.

    Construct through open_table() (streams) or dbase_stream.dbf.files.open_path()
    (filesystem). The table owns both streams: close() closes them.
    """

    def __init__(
        self,
        stream: BinaryIO,
        header: TableHeader,
        fields: tuple[FieldDescriptor, ...],
        *,
        memo_stream: BinaryIO | None = None,
        memo: MemoResolver | None = None,
        options: ReaderOptions | None = None,
        name: str | None = None,
    ) -> None:
        self.stream = stream
        self.header = header
        self.fields = fields
        self.memo_stream = memo_stream
        self.memo = memo
        self.options = options or ReaderOptions()
        self.name = name
        self.decoder = RecordDecoder(fields, self.options, memo)
        self._iterator: RowIterator | None = None
        self._closed = False

    @property
    def schema(self) -> tuple[FieldDescriptor, ...]:
        return self.fields

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def record_count(self) -> int:
        return self.header.record_count

    @property
    def closed(self) -> bool:
        return self._closed

    def field(self, name: str) -> FieldDescriptor:
        """Descriptor by name (last descriptor wins for duplicated names)."""
        for descriptor in reversed(self.fields):
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    def rows(self) -> RowIterator:
        """Return the record iterator. Can be called once per table."""
        if self._closed:
            raise TableStateError("table is closed")
        if self._iterator is not None:
            raise TableStateError("rows() already requested for this table; reopen it to read again")
        self.stream.seek(self.header.header_length)
        self._iterator = RowIterator(self)
        return self._iterator

    def __iter__(self) -> Iterator[Record]:
        return self.rows()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.stream.close()
        finally:
            if self.memo_stream is not None:
                self.memo_stream.close()

    def __enter__(self) -> Table:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        label = self.name or "<stream>"
        return (
            f"Table({label!r}, dialect={self.header.dialect.value}, "
            f"records={self.header.record_count}, fields={len(self.fields)})"
        )


def open_table(
    stream: BinaryIO,
    memo_stream: BinaryIO | None = None,
    options: ReaderOptions | None = None,
    *,
    name: str | None = None,
) -> Table:
    """Parse the header region of ``stream`` and return a Table handle.

    Parameters
    ----------
    stream: seekable binary stream positioned anywhere (it is rewound)
    memo_stream: seekable binary stream of the .dbt / .fpt companion, if any
    options: decoding policies
    name: label used in log messages and repr

    Raises:
        StructuralError: malformed header, descriptor table or memo header
    """
    options = options or ReaderOptions()
    stream.seek(0)
    header = parse_header(stream.read(HEADER_SIZE))
    region = stream.read(header.header_length - HEADER_SIZE)
    if len(region) < header.header_length - HEADER_SIZE:
        raise StructuralError(
            f"header region truncated: {HEADER_SIZE + len(region)} of {header.header_length} bytes"
        )
    fields = parse_field_descriptors(region, header, options)

    has_memo_fields = any(f.field_type is not None and f.field_type.is_memo for f in fields)
    memo: MemoResolver | None = None
    if memo_stream is not None:
        if header.has_memo:
            memo = open_memo(memo_stream, header, options)
        elif has_memo_fields:
            # version byte says "no memo" but the schema has M/G/P fields
            memo_dialect = family_memo_dialect(header.dialect)
            logger.warning(
                f"{name or 'table'}: header declares no memo file but the schema has memo fields; "
                f"reading the supplied file as {memo_dialect.value}"
            )
            memo = open_memo(memo_stream, replace(header, memo_dialect=memo_dialect), options)
        else:
            logger.warning(f"{name or 'table'}: memo file supplied but the table has no memo fields; ignored")
    elif header.has_memo and has_memo_fields:
        logger.warning(f"{name or 'table'}: header declares a memo file but none was supplied")

    return Table(
        stream,
        header,
        fields,
        memo_stream=memo_stream,
        memo=memo,
        options=options,
        name=name,
    )
