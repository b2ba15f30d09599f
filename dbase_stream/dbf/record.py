from __future__ import annotations

import datetime
import re
import struct
from collections.abc import Callable, Sequence
from decimal import Decimal, InvalidOperation

from ..models.config_models import FieldErrorPolicy, ReaderOptions
from ..models.record import FieldValue, Record, ValueKind
from .errors import FieldDecodeError, MemoResolutionError, MissingMemoFileError
from .fields import FieldDescriptor, FieldType
from .memo import MemoResolver

"""Record decoder: one fixed-width record buffer -> Record.

Per-type rules (text types are ASCII inside the binary container):

- C  text, trailing space/NUL padding removed, leading spaces kept
- N  Decimal; F float. Blank -> 0. Non-numeric content is an error, never 0
- D  YYYYMMDD; blank or 00000000 -> None (unset)
- L  TtYy -> True, FfNn -> False, '?' / space -> None
- M/G/P  block pointer; blank or 0 -> empty memo, otherwise resolved
- I  int32 LE; T julian day + milliseconds (2 x uint32 LE); Y int64 LE / 10^4;
  B float64 LE (Visual FoxPro binary types)

The decode function of each field is picked once per table from _DECODERS.
"""

__all__ = [
    "ACTIVE",
    "DELETED",
    "RecordDecoder",
    "julian_day_to_date",
]

ACTIVE = 0x20
DELETED = 0x2A

_NUMBER = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_BLANK = b" \x00"
# binary (4 byte) memo pointer left blank by the writer
_BLANK_POINTER = b"    "
_INT32 = struct.Struct("<i")
_INT64 = struct.Struct("<q")
_DOUBLE = struct.Struct("<d")
_DATETIME = struct.Struct("<II")

# date.toordinal() of JDN 1721426 (0001-01-01) is 1
_JULIAN_ORDINAL_OFFSET = 1721425

_TRUE = frozenset(b"TtYy")
_FALSE = frozenset(b"FfNn")
_UNKNOWN = frozenset(b"? ")


class _FieldFailure(Exception):
    """Internal: raised by a decode function, turned into FieldDecodeError with context."""


def julian_day_to_date(day_number: int) -> datetime.date:
    return datetime.date.fromordinal(day_number - _JULIAN_ORDINAL_OFFSET)


class RecordDecoder:
    """Decodes raw records of one table.

    Parameters
    ----------
    fields: the table's field descriptors
    options: reader options (encoding, error policy)
    memo: memo resolver, or None when the table has no memo file
    """

    def __init__(
        self,
        fields: Sequence[FieldDescriptor],
        options: ReaderOptions | None = None,
        memo: MemoResolver | None = None,
    ) -> None:
        self.fields = tuple(fields)
        self.options = options or ReaderOptions()
        self.memo = memo
        self.record_length = 1 + sum(f.length for f in self.fields)
        self._plan: list[tuple[FieldDescriptor, Callable[[RecordDecoder, FieldDescriptor, bytes], FieldValue]]] = [
            (f, _DECODERS.get(f.field_type, RecordDecoder._raw)) for f in self.fields
        ]

    def decode(self, data: bytes, index: int) -> Record:
        """Decode one record buffer of exactly ``record_length`` bytes.

        Raises (FieldErrorPolicy.RAISE only):
            FieldDecodeError: a field does not match its type grammar
            MemoResolutionError: a memo pointer cannot be resolved
        """
        if len(data) != self.record_length:
            raise ValueError(f"record buffer is {len(data)} bytes, expected {self.record_length}")
        mark = self.options.field_errors is FieldErrorPolicy.MARK
        errors: list[Exception] = []

        flag = data[0]
        if flag not in (ACTIVE, DELETED):
            error = FieldDecodeError(
                f"invalid deletion flag byte 0x{flag:02X}", record_index=index, raw=data[:1]
            )
            if not mark:
                raise error
            errors.append(error)

        values: dict[str, FieldValue] = {}
        for descriptor, decode in self._plan:
            raw = data[descriptor.offset:descriptor.end]
            try:
                values[descriptor.name] = decode(self, descriptor, raw)
            except _FieldFailure as e:
                error = FieldDecodeError(
                    str(e), field_name=descriptor.name, record_index=index, raw=raw
                )
                if not mark:
                    raise error from None
                errors.append(error)
                values[descriptor.name] = FieldValue(ValueKind.INVALID, raw)
            except MemoResolutionError as e:
                e.field_name = descriptor.name
                e.record_index = index
                if not mark:
                    raise
                errors.append(e)
                values[descriptor.name] = FieldValue(ValueKind.INVALID, raw)
        return Record(index=index, values=values, deleted=flag == DELETED, errors=tuple(errors))

    # -- per-type decoders -------------------------------------------------

    def _character(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        try:
            text = raw.rstrip(_BLANK).decode(self.options.encoding)
        except UnicodeDecodeError as e:
            raise _FieldFailure(f"cannot decode text with {self.options.encoding}: {e.reason}") from None
        return FieldValue(ValueKind.CHARACTER, text)

    def _number_text(self, raw: bytes) -> bytes | None:
        text = raw.strip(_BLANK)
        if not text:
            return None
        if _NUMBER.fullmatch(text) is None:
            raise _FieldFailure(f"not a number: {raw!r}")
        return text

    def _numeric(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        text = self._number_text(raw)
        if text is None:
            return FieldValue(ValueKind.NUMERIC, Decimal(0))
        try:
            return FieldValue(ValueKind.NUMERIC, Decimal(text.decode("ascii")))
        except InvalidOperation:
            raise _FieldFailure(f"not a number: {raw!r}") from None

    def _float(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        text = self._number_text(raw)
        if text is None:
            return FieldValue(ValueKind.FLOAT, 0.0)
        return FieldValue(ValueKind.FLOAT, float(text))

    def _date(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        text = raw.strip(_BLANK)
        if not text or text == b"00000000":
            return FieldValue(ValueKind.DATE, None)
        if len(text) != 8 or not text.isdigit():
            raise _FieldFailure(f"not a YYYYMMDD date: {raw!r}")
        try:
            value = datetime.date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
        except ValueError as e:
            raise _FieldFailure(f"invalid calendar date {raw!r}: {e}") from None
        return FieldValue(ValueKind.DATE, value)

    def _logical(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        if len(raw) < 1:
            raise _FieldFailure("empty logical field")
        char = raw[0]
        if char in _TRUE:
            return FieldValue(ValueKind.LOGICAL, True)
        if char in _FALSE:
            return FieldValue(ValueKind.LOGICAL, False)
        if char in _UNKNOWN:
            return FieldValue(ValueKind.LOGICAL, None)
        raise _FieldFailure(f"invalid logical value {raw!r}")

    def _memo(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        binary = descriptor.field_type is not FieldType.MEMO
        if descriptor.length == 4:
            # 0x20 / 0x00 bytes are part of the integer (block 32 is 20 00 00 00)
            block = 0 if raw == _BLANK_POINTER else int.from_bytes(raw, "little")
        else:
            text = raw.strip(_BLANK)
            if text and not text.isdigit():
                raise _FieldFailure(f"invalid memo block pointer {raw!r}")
            block = int(text) if text else 0
        if block == 0:
            return FieldValue(ValueKind.MEMO, b"" if binary else "")
        if self.memo is None:
            raise MissingMemoFileError(
                f"memo block {block} referenced but no memo file is open", block=block
            )
        result = self.memo.read_block(block)
        if not result.is_text:
            return FieldValue(ValueKind.MEMO, result.data)
        try:
            return FieldValue(ValueKind.MEMO, result.data.decode(self.options.encoding))
        except UnicodeDecodeError as e:
            raise _FieldFailure(f"cannot decode memo text with {self.options.encoding}: {e.reason}") from None

    def _integer(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        if len(raw) != _INT32.size:
            raise _FieldFailure(f"integer field must be 4 bytes, got {len(raw)}")
        return FieldValue(ValueKind.INTEGER, _INT32.unpack(raw)[0])

    def _datetime(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        if len(raw) != _DATETIME.size:
            raise _FieldFailure(f"datetime field must be 8 bytes, got {len(raw)}")
        if raw == _BLANK_POINTER * 2:
            return FieldValue(ValueKind.DATETIME, None)
        day_number, millis = _DATETIME.unpack(raw)
        if day_number == 0:
            return FieldValue(ValueKind.DATETIME, None)
        try:
            day = julian_day_to_date(day_number)
        except (ValueError, OverflowError):
            raise _FieldFailure(f"julian day {day_number} out of range") from None
        if millis >= 86_400_000:
            raise _FieldFailure(f"time of day {millis} ms out of range")
        moment = datetime.datetime.combine(day, datetime.time()) + datetime.timedelta(milliseconds=millis)
        return FieldValue(ValueKind.DATETIME, moment)

    def _currency(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        if len(raw) != _INT64.size:
            raise _FieldFailure(f"currency field must be 8 bytes, got {len(raw)}")
        return FieldValue(ValueKind.CURRENCY, Decimal(_INT64.unpack(raw)[0]).scaleb(-4))

    def _double(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        if len(raw) != _DOUBLE.size:
            raise _FieldFailure(f"double field must be 8 bytes, got {len(raw)}")
        return FieldValue(ValueKind.DOUBLE, _DOUBLE.unpack(raw)[0])

    def _raw(self, descriptor: FieldDescriptor, raw: bytes) -> FieldValue:
        return FieldValue(ValueKind.RAW, bytes(raw))


_DECODERS: dict[FieldType | None, Callable[[RecordDecoder, FieldDescriptor, bytes], FieldValue]] = {
    FieldType.CHARACTER: RecordDecoder._character,
    FieldType.NUMERIC: RecordDecoder._numeric,
    FieldType.FLOAT: RecordDecoder._float,
    FieldType.DATE: RecordDecoder._date,
    FieldType.LOGICAL: RecordDecoder._logical,
    FieldType.MEMO: RecordDecoder._memo,
    FieldType.GENERAL: RecordDecoder._memo,
    FieldType.PICTURE: RecordDecoder._memo,
    FieldType.INTEGER: RecordDecoder._integer,
    FieldType.DATETIME: RecordDecoder._datetime,
    FieldType.CURRENCY: RecordDecoder._currency,
    FieldType.DOUBLE: RecordDecoder._double,
    FieldType.NULL_FLAGS: RecordDecoder._raw,
    None: RecordDecoder._raw,
}
