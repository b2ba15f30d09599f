from __future__ import annotations

"""Error taxonomy for the dbf decoding engine.

Four families, by scope:

- StructuralError: the header or descriptor table is malformed. Opening the
  table fails and no handle is returned.
- FieldDecodeError: one field of one record does not match its type grammar.
- MemoResolutionError: a memo pointer could not be resolved (missing memo file,
  pointer out of range, truncated payload, missing terminator).
- TruncationError: the table stream ends before the declared record count.

Field and memo errors carry the field name and record index so a caller can
log the problem and keep iterating.
"""

__all__ = [
    "DbfError",
    "StructuralError",
    "UnsupportedVersionError",
    "FieldDecodeError",
    "MemoResolutionError",
    "MissingMemoFileError",
    "MemoBlockOutOfRangeError",
    "TruncatedMemoError",
    "MemoTerminatorError",
    "TruncationError",
    "TableStateError",
]


class DbfError(Exception):
    """Base class for every error raised by the decoder."""


class StructuralError(DbfError):
    """Raised when the header or field descriptor table is malformed."""


class UnsupportedVersionError(StructuralError):
    """Raised when the header version byte is not a known dialect."""

    def __init__(self, version: int) -> None:
        super().__init__(f"unsupported dbf version byte 0x{version:02X}")
        self.version = version


class FieldDecodeError(DbfError):
    """A single field's raw bytes do not match its type's grammar."""

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        record_index: int | None = None,
        raw: bytes | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field_name = field_name
        self.record_index = record_index
        self.raw = raw

    def __str__(self) -> str:
        return _with_location(self.message, self.field_name, self.record_index)


class MemoResolutionError(DbfError):
    """A memo block pointer could not be resolved."""

    def __init__(
        self,
        message: str,
        *,
        block: int | None = None,
        field_name: str | None = None,
        record_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.block = block
        self.field_name = field_name
        self.record_index = record_index

    def __str__(self) -> str:
        return _with_location(self.message, self.field_name, self.record_index)


class MissingMemoFileError(MemoResolutionError):
    """The table references memo content but no memo file was supplied."""


class MemoBlockOutOfRangeError(MemoResolutionError):
    """The pointer lies beyond the memo file's declared extent or in its header."""


class TruncatedMemoError(MemoResolutionError):
    """The memo file ended before the payload was complete."""


class MemoTerminatorError(MemoResolutionError):
    """No 0x1A 0x1A terminator was found within the scan limit."""


class TruncationError(DbfError):
    """The table stream holds fewer bytes than the declared record count implies."""

    def __init__(self, record_index: int, expected: int, actual: int) -> None:
        super().__init__(
            f"record {record_index}: expected {expected} bytes, got {actual} (file truncated)"
        )
        self.record_index = record_index
        self.expected = expected
        self.actual = actual


class TableStateError(DbfError):
    """Raised when rows are requested from a closed or already iterated table."""


def _with_location(message: str, field_name: str | None, record_index: int | None) -> str:
    parts = []
    if record_index is not None:
        parts.append(f"record {record_index}")
    if field_name is not None:
        parts.append(f"field '{field_name}'")
    if not parts:
        return message
    return f"{', '.join(parts)}: {message}"
