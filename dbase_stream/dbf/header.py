from __future__ import annotations

import datetime
import logging
import struct
from dataclasses import dataclass
from enum import Enum

from .errors import StructuralError, UnsupportedVersionError

"""Table header decoder (first 32 bytes of a .dbf file).

Layout (little-endian):

    0      version / dialect byte
    1-3    last update: year - 1900, month, day
    4-7    record count (uint32)
    8-9    header length in bytes (uint16)
    10-11  record length in bytes (uint16)
    12-27  reserved
    28     table flags (Visual FoxPro: 0x01 cdx, 0x02 memo, 0x04 database)
    29     code page / language driver id
    30-31  reserved

The version byte alone selects the dialect; for Visual FoxPro the memo file is
announced by table flag 0x02 instead.
"""

__all__ = [
    "HEADER_SIZE",
    "Dialect",
    "MemoDialect",
    "TableHeader",
    "family_memo_dialect",
    "parse_header",
]

logger = logging.getLogger(__name__)

HEADER_SIZE = 32
_HEADER_STRUCT = struct.Struct("<B3BIHH16xBB2x")

VFP_FLAG_MEMO = 0x02


class Dialect(Enum):
    FOXBASE = "foxbase"
    DBASE3 = "dbase3"
    DBASE4 = "dbase4"
    FOXPRO = "foxpro"
    VISUAL_FOXPRO = "visual_foxpro"


class MemoDialect(Enum):
    """Memo companion file layout.

    - NONE: the table has no memo file
    - DBT: dBase block-sequential memo (.dbt)
    - FPT: FoxPro block-typed memo (.fpt)
    """
    NONE = "none"
    DBT = "dbt"
    FPT = "fpt"


# version byte -> (dialect, memo dialect); Visual FoxPro memo resolved from flags
_VERSIONS: dict[int, tuple[Dialect, MemoDialect]] = {
    0x02: (Dialect.FOXBASE, MemoDialect.NONE),
    0x03: (Dialect.DBASE3, MemoDialect.NONE),
    0x83: (Dialect.DBASE3, MemoDialect.DBT),
    0x43: (Dialect.DBASE4, MemoDialect.NONE),
    0x63: (Dialect.DBASE4, MemoDialect.NONE),
    0x8B: (Dialect.DBASE4, MemoDialect.DBT),
    0xCB: (Dialect.DBASE4, MemoDialect.DBT),
    0xFB: (Dialect.FOXPRO, MemoDialect.NONE),
    0xF5: (Dialect.FOXPRO, MemoDialect.FPT),
    0x30: (Dialect.VISUAL_FOXPRO, MemoDialect.NONE),
    0x31: (Dialect.VISUAL_FOXPRO, MemoDialect.NONE),
    0x32: (Dialect.VISUAL_FOXPRO, MemoDialect.NONE),
    0x33: (Dialect.VISUAL_FOXPRO, MemoDialect.NONE),
}


@dataclass(frozen=True)
class TableHeader:
    """Parsed fixed header of a dbf table."""
    version: int
    dialect: Dialect
    memo_dialect: MemoDialect
    last_update: datetime.date | None  # None when the stored bytes are not a date
    record_count: int
    header_length: int
    record_length: int
    table_flags: int = 0
    code_page: int = 0

    @property
    def has_memo(self) -> bool:
        return self.memo_dialect is not MemoDialect.NONE


def family_memo_dialect(dialect: Dialect) -> MemoDialect:
    """Memo layout used by a dialect family when the version byte does not say."""
    if dialect in (Dialect.FOXPRO, Dialect.VISUAL_FOXPRO):
        return MemoDialect.FPT
    return MemoDialect.DBT


def _last_update(year: int, month: int, day: int) -> datetime.date | None:
    try:
        return datetime.date(1900 + year, month, day)
    except ValueError:
        return None


def parse_header(data: bytes) -> TableHeader:
    """Decode the 32-byte table header.

    Raises:
        StructuralError: fewer than 32 bytes, or lengths that cannot hold a
            single field descriptor and terminator
        UnsupportedVersionError: unknown version byte
    """
    if len(data) < HEADER_SIZE:
        raise StructuralError(f"table header truncated: {len(data)} of {HEADER_SIZE} bytes")
    (
        version,
        year,
        month,
        day,
        record_count,
        header_length,
        record_length,
        table_flags,
        code_page,
    ) = _HEADER_STRUCT.unpack(data[:HEADER_SIZE])

    try:
        dialect, memo_dialect = _VERSIONS[version]
    except KeyError:
        raise UnsupportedVersionError(version) from None

    if dialect is Dialect.VISUAL_FOXPRO and table_flags & VFP_FLAG_MEMO:
        memo_dialect = MemoDialect.FPT

    # 32 byte header + terminator が最低限
    if header_length < HEADER_SIZE + 1:
        raise StructuralError(f"header length {header_length} is smaller than {HEADER_SIZE + 1}")
    if record_length < 1:
        raise StructuralError("record length is zero")

    header = TableHeader(
        version=version,
        dialect=dialect,
        memo_dialect=memo_dialect,
        last_update=_last_update(year, month, day),
        record_count=record_count,
        header_length=header_length,
        record_length=record_length,
        table_flags=table_flags,
        code_page=code_page,
    )
    logger.debug(
        f"header version=0x{version:02X} dialect={dialect.value} memo={memo_dialect.value} "
        f"records={record_count} header_length={header_length} record_length={record_length}"
    )
    return header
