"""Domain models for the dbf reader and export tool.

Record/FieldValue are produced by the decoding engine; the remaining models
carry configuration, error log entries and export results.
"""

from .config_models import (
    DuplicateNamePolicy,
    ExportConfig,
    FieldErrorPolicy,
    ReaderOptions,
    UnknownTypePolicy,
)
from .record import FieldValue, Record, ValueKind

__all__ = [
    # Configuration models
    "DuplicateNamePolicy",
    "ExportConfig",
    "FieldErrorPolicy",
    "ReaderOptions",
    "UnknownTypePolicy",
    # Record models
    "FieldValue",
    "Record",
    "ValueKind",
]
