from __future__ import annotations

import datetime
import struct
from decimal import Decimal

import pytest

from dbase_stream.dbf.errors import FieldDecodeError, MissingMemoFileError
from dbase_stream.dbf.fields import FieldDescriptor, FieldType
from dbase_stream.dbf.memo import MemoBlock, MemoType
from dbase_stream.dbf.record import RecordDecoder, julian_day_to_date
from dbase_stream.models.config_models import FieldErrorPolicy, ReaderOptions
from dbase_stream.models.record import FieldValue, ValueKind


def _fields(*specs: tuple[str, str, int]) -> list[FieldDescriptor]:
    out = []
    offset = 1
    for name, tag, length in specs:
        out.append(FieldDescriptor(name, tag, FieldType(tag), length, 0, offset))
        offset += length
    return out


def _decode(specs, *cells: bytes, flag: bytes = b" ", options: ReaderOptions | None = None, index: int = 0):
    decoder = RecordDecoder(_fields(*specs), options)
    return decoder.decode(flag + b"".join(cells), index)


def test_round_trip_known_values():
    record = _decode(
        [("NAME", "C", 5), ("AMOUNT", "N", 7), ("WHEN", "D", 8), ("OK", "L", 1), ("MAYBE", "L", 1)],
        b"ABC  ", b"  12.50", b"20230115", b"T", b"?",
    )
    assert record["NAME"] == FieldValue(ValueKind.CHARACTER, "ABC")
    assert record["AMOUNT"].kind is ValueKind.NUMERIC
    assert record.value_of("AMOUNT") == Decimal("12.50")
    assert record.value_of("AMOUNT") == 12.5
    assert record.value_of("WHEN") == datetime.date(2023, 1, 15)
    assert record.value_of("OK") is True
    assert record.value_of("MAYBE") is None
    assert record.deleted is False
    assert record.errors == ()


def test_record_has_one_entry_per_field_in_order():
    record = _decode([("B", "C", 1), ("A", "C", 1)], b"x", b"y")
    assert record.field_names == ["B", "A"]
    assert len(record) == 2
    assert "A" in record
    assert record.get("missing") is None
    with pytest.raises(KeyError):
        record["missing"]


def test_character_keeps_leading_spaces():
    record = _decode([("C", "C", 6)], b"  ab  ")
    assert record.value_of("C") == "  ab"


def test_character_strips_nul_padding():
    record = _decode([("C", "C", 4)], b"ab\x00\x00")
    assert record.value_of("C") == "ab"


def test_blank_fields_use_type_defaults():
    record = _decode(
        [("C", "C", 3), ("N", "N", 5), ("F", "F", 5), ("D", "D", 8), ("L", "L", 1)],
        b"   ", b"     ", b"     ", b"        ", b" ",
    )
    assert record.as_dict() == {"C": "", "N": Decimal(0), "F": 0.0, "D": None, "L": None}
    assert record["D"].kind is ValueKind.DATE
    assert record["D"].is_blank


def test_all_zero_date_is_unset():
    record = _decode([("D", "D", 8)], b"00000000")
    assert record.value_of("D") is None


def test_float_field():
    record = _decode([("F", "F", 8)], b" -1.5e+2")
    assert record["F"] == FieldValue(ValueKind.FLOAT, -150.0)


def test_negative_numeric():
    record = _decode([("N", "N", 6)], b"  -3.7")
    assert record.value_of("N") == Decimal("-3.7")


@pytest.mark.parametrize("raw", [b"12a.5", b"*****", b"1.2.3", b"  -  ", b" 12\n ", b"\t12  "])
def test_numeric_garbage_is_error_not_zero(raw):
    with pytest.raises(FieldDecodeError) as e:
        _decode([("N", "N", 5)], raw, index=7)
    assert e.value.field_name == "N"
    assert e.value.record_index == 7
    assert e.value.raw == raw
    assert "record 7" in str(e.value) and "field 'N'" in str(e.value)


@pytest.mark.parametrize("raw", [b"2023-1-1", b"20231345", b"20230230", b"ABCDEFGH"])
def test_invalid_dates(raw):
    with pytest.raises(FieldDecodeError):
        _decode([("D", "D", 8)], raw)


@pytest.mark.parametrize(
    "raw, expected",
    [(b"T", True), (b"t", True), (b"Y", True), (b"y", True),
     (b"F", False), (b"f", False), (b"N", False), (b"n", False),
     (b"?", None), (b" ", None)],
)
def test_logical_values(raw, expected):
    assert _decode([("L", "L", 1)], raw).value_of("L") is expected


def test_logical_garbage():
    with pytest.raises(FieldDecodeError):
        _decode([("L", "L", 1)], b"X")


def test_deleted_flag():
    record = _decode([("C", "C", 1)], b"a", flag=b"*")
    assert record.deleted is True


def test_invalid_deletion_flag():
    with pytest.raises(FieldDecodeError, match="deletion flag"):
        _decode([("C", "C", 1)], b"a", flag=b"#")


def test_mark_policy_keeps_raw_bytes_and_continues():
    options = ReaderOptions(field_errors=FieldErrorPolicy.MARK)
    record = _decode([("N", "N", 3), ("C", "C", 2)], b"x1y", b"ok", options=options, index=4)
    assert record["N"] == FieldValue(ValueKind.INVALID, b"x1y")
    assert record.value_of("C") == "ok"
    assert record.invalid is True
    assert len(record.errors) == 1
    assert record.errors[0].field_name == "N"
    assert record.errors[0].record_index == 4


def test_blank_memo_pointer_needs_no_memo_file():
    record = _decode([("M", "M", 10)], b"          ")
    assert record["M"] == FieldValue(ValueKind.MEMO, "")
    record = _decode([("M", "M", 10)], b"0000000000")
    assert record.value_of("M") == ""


def test_memo_pointer_without_memo_file():
    with pytest.raises(MissingMemoFileError) as e:
        _decode([("M", "M", 10)], b"         1", index=3)
    assert e.value.field_name == "M"
    assert e.value.record_index == 3
    assert e.value.block == 1


def test_memo_pointer_garbage():
    with pytest.raises(FieldDecodeError):
        _decode([("M", "M", 10)], b"      ab12")


def test_blank_binary_memo_is_empty_bytes():
    record = _decode([("G", "G", 10)], b"          ")
    assert record.value_of("G") == b""


class _RecordingMemo:
    def __init__(self) -> None:
        self.calls: list[int] = []

    def read_block(self, block: int) -> MemoBlock:
        self.calls.append(block)
        return MemoBlock(MemoType.TEXT, f"block {block}".encode("ascii"))


@pytest.mark.parametrize("block", [32, 8224, 2097152, 7])
def test_binary_memo_pointer_bytes_are_not_padding(block):
    # 32 -> 20 00 00 00: space/NUL bytes are part of the pointer
    memo = _RecordingMemo()
    decoder = RecordDecoder(_fields(("NOTE", "M", 4)), memo=memo)
    record = decoder.decode(b" " + block.to_bytes(4, "little"), 0)
    assert memo.calls == [block]
    assert record.value_of("NOTE") == f"block {block}"


def test_binary_memo_pointer_zero_or_spaces_is_empty():
    memo = _RecordingMemo()
    decoder = RecordDecoder(_fields(("NOTE", "M", 4)), memo=memo)
    assert decoder.decode(b" " + b"\x00" * 4, 0).value_of("NOTE") == ""
    assert decoder.decode(b" " + b"    ", 1).value_of("NOTE") == ""
    assert memo.calls == []


def test_visual_foxpro_integer_currency_double():
    record = _decode(
        [("I", "I", 4), ("Y", "Y", 8), ("B", "B", 8)],
        struct.pack("<i", -5), struct.pack("<q", 123456), struct.pack("<d", 2.25),
    )
    assert record["I"] == FieldValue(ValueKind.INTEGER, -5)
    assert record.value_of("Y") == Decimal("12.3456")
    assert record["Y"].kind is ValueKind.CURRENCY
    assert record.value_of("B") == 2.25


def test_visual_foxpro_datetime():
    raw = bytes([0xB8, 0x83, 0x25, 0x00, 0x80, 0xEE, 0x36, 0x00])
    record = _decode([("T", "T", 8)], raw)
    assert record.value_of("T") == datetime.datetime(2019, 3, 9, 1, 0, 0)


def test_visual_foxpro_blank_datetime():
    record = _decode([("T", "T", 8)], b"\x00" * 8)
    assert record["T"] == FieldValue(ValueKind.DATETIME, None)


def test_julian_day_conversion():
    assert julian_day_to_date(2458730) == datetime.date(2019, 9, 3)


def test_unknown_type_decodes_raw():
    fields = [FieldDescriptor("X", "Q", None, 3, 0, 1)]
    record = RecordDecoder(fields).decode(b" a\x00b", 0)
    assert record["X"] == FieldValue(ValueKind.RAW, b"a\x00b")


def test_wrong_buffer_length():
    decoder = RecordDecoder(_fields(("C", "C", 3)))
    with pytest.raises(ValueError):
        decoder.decode(b" ab", 0)


def test_encoding_option():
    record = _decode([("C", "C", 3)], "é".encode("utf-8") + b" ", options=ReaderOptions(encoding="utf-8"))
    assert record.value_of("C") == "é"
