# Shared pytest fixtures: temp workspace, config, in-memory dbf/dbt/fpt builders
from __future__ import annotations

import struct
import tempfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pytest

FieldSpec = tuple[str, str, int, int]  # name, type tag, length, decimal count


def _cell(value: bytes | str, length: int) -> bytes:
    raw = value if isinstance(value, bytes) else value.encode("latin-1").ljust(length)
    assert len(raw) == length, f"cell {raw!r} is not {length} bytes"
    return raw


def make_dbf(
    fields: Sequence[FieldSpec],
    rows: Iterable[Sequence[bytes | str]] = (),
    *,
    version: int = 0x03,
    deleted: Iterable[int] = (),
    record_count: int | None = None,
    record_length: int | None = None,
    table_flags: int = 0,
    code_page: int = 0,
    last_update: tuple[int, int, int] = (123, 1, 15),
    header_padding: bytes = b"",
    terminator: bool = True,
    eof_marker: bool = True,
) -> bytes:
    """Build a complete .dbf image."""
    rows = [list(r) for r in rows]
    deleted = set(deleted)
    header_length = 32 + 32 * len(fields) + (1 if terminator else 0) + len(header_padding)
    if record_length is None:
        record_length = 1 + sum(f[2] for f in fields)
    if record_count is None:
        record_count = len(rows)
    year, month, day = last_update
    out = bytearray(
        struct.pack(
            "<B3BIHH16xBB2x",
            version, year, month, day, record_count, header_length, record_length, table_flags, code_page,
        )
    )
    for name, tag, length, decimals in fields:
        out += name.encode("ascii").ljust(11, b"\x00")[:11]
        out += tag.encode("ascii")
        out += b"\x00" * 4
        out += bytes([length, decimals])
        out += b"\x00" * 14
    if terminator:
        out += b"\x0d"
    out += header_padding
    for i, row in enumerate(rows):
        out += b"*" if i in deleted else b" "
        for (_, _, length, _), value in zip(fields, row, strict=True):
            out += _cell(value, length)
    if eof_marker:
        out += b"\x1a"
    return bytes(out)


def _place(blob: bytearray, block: int, block_size: int, payload: bytes) -> None:
    start = block * block_size
    assert len(blob) <= start, f"block {block} overlaps previous content"
    blob += b"\x00" * (start - len(blob))
    blob += payload
    remainder = len(blob) % block_size
    if remainder:
        blob += b"\x00" * (block_size - remainder)


def make_dbt(
    memos: dict[int, bytes | str],
    *,
    dbase4: bool = False,
    block_size: int = 512,
    next_free: int | None = None,
) -> bytes:
    """Build a .dbt image. dBase III memos end with 0x1A 0x1A; dBase IV ones are length-prefixed."""
    header = bytearray(max(512, block_size))
    if dbase4:
        header[20:22] = block_size.to_bytes(2, "little")
    blob = bytearray(header)
    for block in sorted(memos):
        text = memos[block]
        data = text.encode("latin-1") if isinstance(text, str) else text
        if dbase4:
            payload = b"\xff\xff\x08\x00" + (len(data) + 8).to_bytes(4, "little") + data
        else:
            payload = data + b"\x1a\x1a"
        _place(blob, block, block_size, payload)
    if next_free is None:
        next_free = len(blob) // block_size
    blob[0:4] = next_free.to_bytes(4, "little")
    return bytes(blob)


def make_fpt(
    blocks: dict[int, tuple[int, bytes | str]],
    *,
    block_size: int = 64,
    next_free: int | None = None,
) -> bytes:
    """Build a .fpt image: {block: (type, data)} with type 0 picture / 1 text / 2 object."""
    blob = bytearray(512)
    blob[6:8] = block_size.to_bytes(2, "big")
    for block in sorted(blocks):
        kind, content = blocks[block]
        data = content.encode("latin-1") if isinstance(content, str) else content
        payload = kind.to_bytes(4, "big") + len(data).to_bytes(4, "big") + data
        _place(blob, block, block_size, payload)
    if next_free is None:
        next_free = len(blob) // block_size
    blob[0:4] = next_free.to_bytes(4, "big")
    return bytes(blob)


@pytest.fixture()
def build_dbf() -> Callable[..., bytes]:
    return make_dbf


@pytest.fixture()
def build_dbt() -> Callable[..., bytes]:
    return make_dbt


@pytest.fixture()
def build_fpt() -> Callable[..., bytes]:
    return make_fpt


# C/N/D/L table used by several tests
PEOPLE_FIELDS: list[FieldSpec] = [
    ("NAME", "C", 10, 0),
    ("AMOUNT", "N", 7, 2),
    ("BORN", "D", 8, 0),
    ("ACTIVE", "L", 1, 0),
]

PEOPLE_ROWS = [
    ["Alice", "  12.50", "19990903", "T"],
    ["Bob", "   3.00", "20190904", "F"],
    ["  Carol", "       ", "        ", "?"],
]


@pytest.fixture()
def people_fields() -> list[FieldSpec]:
    return list(PEOPLE_FIELDS)


@pytest.fixture()
def people_dbf() -> bytes:
    return make_dbf(PEOPLE_FIELDS, PEOPLE_ROWS, deleted=[1])


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("DBASE_STREAM_CONFIG", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
output_directory: ./out
format: jsonl
reader:
  encoding: latin-1
  skip_deleted: false
  field_errors: mark
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "export.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def people_files(temp_workdir: Path, people_dbf: bytes) -> list[Path]:
    f = temp_workdir / "data" / "people.dbf"
    f.write_bytes(people_dbf)
    return [f]
