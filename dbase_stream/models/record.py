from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Record and FieldValue models.

A Record is the decoded form of one fixed-width dbf record: one FieldValue per
field descriptor, in descriptor order, plus the deletion flag. FieldValue is a
tagged value (kind + payload) so callers can tell an unset date from an empty
string or a picture memo from a text memo without inspecting Python types.
"""

__all__ = [
    "ValueKind",
    "FieldValue",
    "Record",
]


class ValueKind(Enum):
    """Tag of a decoded field value.

    The payload type for each kind:

    - CHARACTER: str
    - NUMERIC: decimal.Decimal
    - FLOAT: float
    - DATE: datetime.date, or None when unset
    - LOGICAL: True / False, or None when unknown
    - MEMO: str for text blocks, bytes for picture/object blocks
    - INTEGER: int
    - DATETIME: datetime.datetime, or None when unset
    - CURRENCY: decimal.Decimal with four decimal places
    - DOUBLE: float
    - RAW: bytes passed through undecoded
    - INVALID: the raw bytes of a field that failed to decode
    """
    CHARACTER = "character"
    NUMERIC = "numeric"
    FLOAT = "float"
    DATE = "date"
    LOGICAL = "logical"
    MEMO = "memo"
    INTEGER = "integer"
    DATETIME = "datetime"
    CURRENCY = "currency"
    DOUBLE = "double"
    RAW = "raw"
    INVALID = "invalid"


@dataclass(frozen=True)
class FieldValue:
    kind: ValueKind
    value: Any

    @property
    def is_blank(self) -> bool:
        """True for an unset date/datetime, unknown logical or empty text/memo."""
        if self.value is None:
            return True
        if isinstance(self.value, (str, bytes)):
            return len(self.value) == 0
        return False


@dataclass(frozen=True)
class Record:
    """One decoded dbf record.

    ``index`` is the 0-based position of the record in the file, counting
    deleted records, so it can be used to locate the raw bytes again.
    ``errors`` is only populated under FieldErrorPolicy.MARK.
    """
    index: int
    values: dict[str, FieldValue]  # field name -> value, descriptor order
    deleted: bool = False
    errors: tuple[Exception, ...] = field(default=())

    def __getitem__(self, name: str) -> FieldValue:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __len__(self) -> int:
        return len(self.values)

    def get(self, name: str, default: FieldValue | None = None) -> FieldValue | None:
        return self.values.get(name, default)

    def value_of(self, name: str) -> Any:
        """Plain Python payload of a field (KeyError for unknown names)."""
        return self.values[name].value

    @property
    def field_names(self) -> list[str]:
        return list(self.values)

    @property
    def invalid(self) -> bool:
        return bool(self.errors)

    def as_dict(self) -> dict[str, Any]:
        return {name: fv.value for name, fv in self.values.items()}
