"""Streaming reader for dBase III/IV and FoxPro .dbf tables with .dbt/.fpt memo files."""

from .dbf import (
    DbfError,
    FieldDecodeError,
    FieldDescriptor,
    FieldType,
    MemoResolutionError,
    MissingMemoFileError,
    StructuralError,
    Table,
    TableHeader,
    TruncationError,
    open_path,
    open_table,
)
from .models import (
    DuplicateNamePolicy,
    FieldErrorPolicy,
    FieldValue,
    ReaderOptions,
    Record,
    UnknownTypePolicy,
    ValueKind,
)

__version__ = "0.1.0"

__all__ = [
    "DbfError",
    "DuplicateNamePolicy",
    "FieldDecodeError",
    "FieldDescriptor",
    "FieldErrorPolicy",
    "FieldType",
    "FieldValue",
    "MemoResolutionError",
    "MissingMemoFileError",
    "ReaderOptions",
    "Record",
    "StructuralError",
    "Table",
    "TableHeader",
    "TruncationError",
    "UnknownTypePolicy",
    "ValueKind",
    "open_path",
    "open_table",
]
