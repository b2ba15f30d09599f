"""dbf decoding engine: header, field descriptors, records, memo files, tables."""

from .errors import (
    DbfError,
    FieldDecodeError,
    MemoBlockOutOfRangeError,
    MemoResolutionError,
    MemoTerminatorError,
    MissingMemoFileError,
    StructuralError,
    TableStateError,
    TruncatedMemoError,
    TruncationError,
    UnsupportedVersionError,
)
from .fields import FieldDescriptor, FieldType
from .files import open_path
from .header import Dialect, MemoDialect, TableHeader
from .table import RowIterator, Table, open_table

__all__ = [
    "DbfError",
    "Dialect",
    "FieldDecodeError",
    "FieldDescriptor",
    "FieldType",
    "MemoBlockOutOfRangeError",
    "MemoDialect",
    "MemoResolutionError",
    "MemoTerminatorError",
    "MissingMemoFileError",
    "RowIterator",
    "StructuralError",
    "Table",
    "TableHeader",
    "TableStateError",
    "TruncatedMemoError",
    "TruncationError",
    "UnsupportedVersionError",
    "open_path",
    "open_table",
]
