from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Config dataclasses for the dbf reader and export tool.

ReaderOptions carries every decoding policy the engine supports. ExportConfig is
the root object built by dbase_stream.config.loader from config/export.yml.
"""

__all__ = [
    "FieldErrorPolicy",
    "UnknownTypePolicy",
    "DuplicateNamePolicy",
    "ReaderOptions",
    "ExportConfig",
    "DEFAULT_MEMO_SCAN_LIMIT",
]

# 1 MiB: dBase III memo terminator search bound
DEFAULT_MEMO_SCAN_LIMIT = 1024 * 1024


class FieldErrorPolicy(Enum):
    """What the record decoder does with a field that fails to decode.

    - RAISE: raise the FieldDecodeError / MemoResolutionError from next()
    - MARK: keep the raw bytes as an INVALID value and list the error on the Record
    """
    RAISE = "raise"
    MARK = "mark"


class UnknownTypePolicy(Enum):
    """Handling of field type tags outside the dialect's type set."""
    ERROR = "error"
    RAW = "raw"


class DuplicateNamePolicy(Enum):
    """Handling of two descriptors with the same trimmed name."""
    ERROR = "error"
    LAST_WINS = "last_wins"


@dataclass(frozen=True)
class ReaderOptions:
    """Decoding policies applied when a table is opened."""
    encoding: str = "latin-1"  # Character / memo text codec (no transcoding beyond this)
    skip_deleted: bool = False  # 既定は削除済レコードも返す (deleted=True)
    field_errors: FieldErrorPolicy = FieldErrorPolicy.RAISE
    unknown_field_types: UnknownTypePolicy = UnknownTypePolicy.ERROR
    duplicate_names: DuplicateNamePolicy = DuplicateNamePolicy.ERROR
    memo_scan_limit: int = DEFAULT_MEMO_SCAN_LIMIT  # bytes scanned for 0x1A 0x1A
    memo_cache_size: int = 0  # blocks kept by MemoCache (0 = no cache)

    def __post_init__(self) -> None:
        if self.memo_scan_limit <= 0:
            raise ValueError("memo_scan_limit must be positive")
        if self.memo_cache_size < 0:
            raise ValueError("memo_cache_size must not be negative")


@dataclass(frozen=True)
class ExportConfig:
    """Root configuration object for the export CLI."""
    source_directory: str  # Directory scanned for .dbf files
    output_directory: str  # Directory receiving one output file per table
    format: str = "jsonl"  # jsonl | csv
    reader: ReaderOptions = field(default_factory=ReaderOptions)
