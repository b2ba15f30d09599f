from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the export error log.

One ErrorRecord per decoding problem, serialized as a JSON line with a fixed
key set. ``record=-1`` marks table-level failures (structural errors, files
that cannot be opened) where no record index applies; ``field`` is None for
record- or table-level failures.
"""

__all__ = [
    "ErrorRecord",
    "error_type_for",
]


def error_type_for(exc: BaseException) -> str:
    """UPPER_SNAKE classification of an exception (FieldDecodeError -> FIELD_DECODE_ERROR)."""
    name = type(exc).__name__
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i - 1].isupper():
            out.append("_")
        out.append(ch.upper())
    return "".join(out)


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: table file name
        record: 0-based record index, or -1 when the error is not tied to a record
        field: field name, or None
        error_type: error classification in UPPER_SNAKE_CASE format
        message: human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    record: int  # 不明な場合 -1
    field: str | None
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, record: int, field: str | None, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            record=record,
            field=field,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_exception(file: str, exc: BaseException) -> ErrorRecord:
        """Build a record from a decoder error, reading its location attributes."""
        record_index = getattr(exc, "record_index", None)
        return ErrorRecord.create(
            file=file,
            record=record_index if record_index is not None else -1,
            field=getattr(exc, "field_name", None),
            error_type=error_type_for(exc),
            message=str(exc),
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
