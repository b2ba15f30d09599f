from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..models.config_models import DuplicateNamePolicy, ReaderOptions, UnknownTypePolicy
from .errors import StructuralError
from .header import HEADER_SIZE, Dialect, TableHeader

"""Field descriptor table decoder.

Each descriptor is 32 bytes:

    0-10   name, NUL (or space) padded
    11     type tag character
    12-15  reserved (Visual FoxPro: displacement in record)
    16     field length
    17     decimal count
    18     field flags (Visual FoxPro)
    19-31  reserved / work area

The array ends with a single 0x0D byte that must appear before the header
length boundary. Offsets are computed here, starting at 1 because byte 0 of
every record is the deletion flag.
"""

__all__ = [
    "DESCRIPTOR_SIZE",
    "TERMINATOR",
    "FieldType",
    "FieldDescriptor",
    "field_types_for",
    "parse_field_descriptors",
]

logger = logging.getLogger(__name__)

DESCRIPTOR_SIZE = 32
TERMINATOR = 0x0D
NAME_SIZE = 11


class FieldType(Enum):
    CHARACTER = "C"
    NUMERIC = "N"
    FLOAT = "F"
    DATE = "D"
    LOGICAL = "L"
    MEMO = "M"
    GENERAL = "G"  # FoxPro OLE object memo
    PICTURE = "P"  # FoxPro picture memo
    INTEGER = "I"
    DATETIME = "T"
    CURRENCY = "Y"
    DOUBLE = "B"
    NULL_FLAGS = "0"  # Visual FoxPro _NullFlags system field

    @property
    def is_memo(self) -> bool:
        return self in _MEMO_TYPES


_MEMO_TYPES = frozenset({FieldType.MEMO, FieldType.GENERAL, FieldType.PICTURE})

_DBASE_TYPES = frozenset({
    FieldType.CHARACTER,
    FieldType.NUMERIC,
    FieldType.FLOAT,
    FieldType.DATE,
    FieldType.LOGICAL,
    FieldType.MEMO,
})
_FOXPRO_TYPES = _DBASE_TYPES | {FieldType.GENERAL, FieldType.PICTURE}
_VISUAL_FOXPRO_TYPES = _FOXPRO_TYPES | {
    FieldType.INTEGER,
    FieldType.DATETIME,
    FieldType.CURRENCY,
    FieldType.DOUBLE,
    FieldType.NULL_FLAGS,
}

_TYPE_SETS: dict[Dialect, frozenset[FieldType]] = {
    Dialect.FOXBASE: _DBASE_TYPES,
    Dialect.DBASE3: _DBASE_TYPES,
    Dialect.DBASE4: _DBASE_TYPES,
    Dialect.FOXPRO: _FOXPRO_TYPES,
    Dialect.VISUAL_FOXPRO: _VISUAL_FOXPRO_TYPES,
}


def field_types_for(dialect: Dialect) -> frozenset[FieldType]:
    """Field types a table of the given dialect may declare."""
    return _TYPE_SETS[dialect]


@dataclass(frozen=True)
class FieldDescriptor:
    """One column of the table schema."""
    name: str
    type_tag: str  # raw tag character as stored
    field_type: FieldType | None  # None only for unknown tags passed through as raw bytes
    length: int
    decimal_count: int
    offset: int  # byte offset within the record (deletion flag is offset 0)
    flags: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length


def _parse_name(raw: bytes, position: int) -> str:
    name = raw.rstrip(b"\x00 ")
    if not name:
        raise StructuralError(f"field descriptor {position}: empty field name")
    if b"\x00" in name:
        raise StructuralError(f"field descriptor {position}: embedded NUL in field name {raw!r}")
    try:
        return name.decode("ascii")
    except UnicodeDecodeError:
        raise StructuralError(f"field descriptor {position}: non-ASCII field name {raw!r}") from None


def _parse_type(tag_byte: int, name: str, allowed: frozenset[FieldType], options: ReaderOptions) -> tuple[str, FieldType | None]:
    tag = chr(tag_byte)
    try:
        field_type = FieldType(tag.upper())
    except ValueError:
        field_type = None
    if field_type is not None and field_type in allowed:
        return tag, field_type
    if options.unknown_field_types is UnknownTypePolicy.RAW:
        logger.debug(f"field '{name}': type {tag!r} passed through as raw bytes")
        return tag, None
    raise StructuralError(f"field '{name}': unrecognized field type {tag!r}")


def parse_field_descriptors(
    data: bytes, header: TableHeader, options: ReaderOptions | None = None
) -> tuple[FieldDescriptor, ...]:
    """Decode the descriptor array that follows the 32-byte header.

    Parameters
    ----------
    data: header region after the first 32 bytes (``header_length - 32`` bytes)
    header: the already parsed table header
    options: decoding policies (unknown types, duplicate names)

    Raises:
        StructuralError: missing terminator, malformed name, unknown type,
            duplicate name, or ``sum(lengths) + 1 != record_length``
    """
    options = options or ReaderOptions()
    allowed = field_types_for(header.dialect)
    boundary = min(len(data), header.header_length - HEADER_SIZE)

    fields: list[FieldDescriptor] = []
    seen: set[str] = set()
    offset = 1
    pos = 0
    terminated = False
    while pos < boundary:
        if data[pos] == TERMINATOR:
            terminated = True
            break
        chunk = data[pos:pos + DESCRIPTOR_SIZE]
        if len(chunk) < DESCRIPTOR_SIZE:
            break
        position = len(fields)
        name = _parse_name(chunk[:NAME_SIZE], position)
        tag, field_type = _parse_type(chunk[11], name, allowed, options)
        length = chunk[16]
        decimal_count = chunk[17]

        if name in seen and options.duplicate_names is DuplicateNamePolicy.ERROR:
            raise StructuralError(f"duplicate field name '{name}'")
        seen.add(name)

        fields.append(
            FieldDescriptor(
                name=name,
                type_tag=tag,
                field_type=field_type,
                length=length,
                decimal_count=decimal_count,
                offset=offset,
                flags=chunk[18],
            )
        )
        offset += length
        pos += DESCRIPTOR_SIZE

    if not terminated:
        raise StructuralError(
            f"field descriptor terminator 0x0D not found within header length {header.header_length}"
        )

    if offset != header.record_length:
        raise StructuralError(
            f"record length mismatch: header declares {header.record_length}, "
            f"fields sum to {offset} (including deletion flag)"
        )
    return tuple(fields)
