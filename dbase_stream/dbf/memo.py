from __future__ import annotations

import io
import logging
import struct
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Union

from ..models.config_models import ReaderOptions
from .errors import (
    MemoBlockOutOfRangeError,
    MemoTerminatorError,
    StructuralError,
    TruncatedMemoError,
)
from .header import Dialect, MemoDialect, TableHeader

"""Memo file resolvers (.dbt and .fpt).

Two unrelated layouts, one class each, chosen by ``open_memo`` from the table
header's memo dialect:

DbtMemoFile (dBase)
    512 byte header; bytes 0-3 next free block (uint32 LE). dBase IV stores the
    block size in bytes 20-21 (uint16 LE); dBase III always uses 512. Block n
    starts at n * block_size. dBase III text runs up to 0x1A 0x1A. dBase IV
    blocks may instead start with FF FF 08 00 followed by a uint32 LE length
    that includes the 8 byte prefix.

FptMemoFile (FoxPro)
    512 byte header; bytes 0-3 next free block (uint32 BE), bytes 6-7 block
    size (uint16 BE). Each payload starts with type (uint32 BE: 0 picture,
    1 text, 2 object) and length (uint32 BE) and may span several blocks.

Resolvers are stateless between calls apart from the stream cursor; MemoCache
adds an explicit bounded cache on top.
"""

__all__ = [
    "MEMO_HEADER_SIZE",
    "MemoType",
    "MemoBlock",
    "DbtMemoFile",
    "FptMemoFile",
    "MemoCache",
    "MemoResolver",
    "open_memo",
]

logger = logging.getLogger(__name__)

MEMO_HEADER_SIZE = 512
DBT3_BLOCK_SIZE = 512
DBT_TERMINATOR = b"\x1a\x1a"
DBT4_BLOCK_START = b"\xff\xff\x08\x00"
_DBT4_PREFIX = struct.Struct("<4sI")
_FPT_HEADER = struct.Struct(">I2xH")
_FPT_BLOCK_PREFIX = struct.Struct(">II")


class MemoType(Enum):
    PICTURE = 0
    TEXT = 1
    OBJECT = 2


@dataclass(frozen=True)
class MemoBlock:
    """Raw payload of one memo entry and the type declared for it."""
    kind: MemoType
    data: bytes

    @property
    def is_text(self) -> bool:
        return self.kind is MemoType.TEXT


def _stream_size(stream: BinaryIO) -> int:
    current = stream.tell()
    size = stream.seek(0, io.SEEK_END)
    stream.seek(current)
    return size


def _read_memo_header(stream: BinaryIO, minimum: int, label: str) -> tuple[bytes, int]:
    size = _stream_size(stream)
    stream.seek(0)
    raw = stream.read(MEMO_HEADER_SIZE)
    if len(raw) < minimum:
        raise StructuralError(f"{label} memo header truncated: {len(raw)} bytes")
    return raw, size


class DbtMemoFile:
    """dBase III / IV block-sequential memo file."""

    def __init__(self, stream: BinaryIO, *, dbase4: bool = False, scan_limit: int) -> None:
        raw, size = _read_memo_header(stream, 4, "dbt")
        self.stream = stream
        self.size = size
        self.next_free_block = int.from_bytes(raw[0:4], "little")
        block_size = DBT3_BLOCK_SIZE
        if dbase4 and len(raw) >= 22:
            block_size = int.from_bytes(raw[20:22], "little") or DBT3_BLOCK_SIZE
        self.block_size = block_size
        self.scan_limit = scan_limit

    @property
    def block_limit(self) -> int:
        """First block index outside the file's declared extent."""
        if self.next_free_block:
            return self.next_free_block
        return -(-self.size // self.block_size)

    def read_block(self, block: int) -> MemoBlock:
        # block 0 はヘッダ
        if block < 1 or block >= self.block_limit:
            raise MemoBlockOutOfRangeError(
                f"dbt block {block} outside 1..{self.block_limit - 1}", block=block
            )
        self.stream.seek(block * self.block_size)
        start = self.stream.read(_DBT4_PREFIX.size)
        if len(start) == _DBT4_PREFIX.size and start[:4] == DBT4_BLOCK_START:
            _, length = _DBT4_PREFIX.unpack(start)
            wanted = max(length - _DBT4_PREFIX.size, 0)
            available = self.size - block * self.block_size - _DBT4_PREFIX.size
            if wanted > available:
                raise TruncatedMemoError(
                    f"dbt block {block}: declared length {length} exceeds the file", block=block
                )
            data = self.stream.read(wanted)
            if len(data) < wanted:
                raise TruncatedMemoError(
                    f"dbt block {block}: expected {wanted} bytes, got {len(data)}", block=block
                )
            return MemoBlock(MemoType.TEXT, data)
        return MemoBlock(MemoType.TEXT, self._scan(block, start))

    def _scan(self, block: int, buffer: bytes) -> bytes:
        searched = 0
        while True:
            found = buffer.find(DBT_TERMINATOR, searched)
            if found >= 0:
                return buffer[:found]
            if len(buffer) >= self.scan_limit:
                raise MemoTerminatorError(
                    f"dbt block {block}: no terminator within {self.scan_limit} bytes", block=block
                )
            # terminator may straddle two reads
            searched = max(len(buffer) - 1, 0)
            chunk = self.stream.read(self.block_size)
            if not chunk:
                raise TruncatedMemoError(
                    f"dbt block {block}: end of file before terminator", block=block
                )
            buffer += chunk


class FptMemoFile:
    """FoxPro block-typed memo file."""

    def __init__(self, stream: BinaryIO) -> None:
        raw, size = _read_memo_header(stream, _FPT_HEADER.size, "fpt")
        self.stream = stream
        self.size = size
        self.next_free_block, block_size = _FPT_HEADER.unpack(raw[:_FPT_HEADER.size])
        self.block_size = block_size or MEMO_HEADER_SIZE

    @property
    def block_limit(self) -> int:
        if self.next_free_block:
            return self.next_free_block
        return -(-self.size // self.block_size)

    @property
    def first_block(self) -> int:
        return -(-MEMO_HEADER_SIZE // self.block_size)

    def read_block(self, block: int) -> MemoBlock:
        if block < self.first_block or block >= self.block_limit:
            raise MemoBlockOutOfRangeError(
                f"fpt block {block} outside {self.first_block}..{self.block_limit - 1}", block=block
            )
        self.stream.seek(block * self.block_size)
        prefix = self.stream.read(_FPT_BLOCK_PREFIX.size)
        if len(prefix) < _FPT_BLOCK_PREFIX.size:
            raise TruncatedMemoError(f"fpt block {block}: block header truncated", block=block)
        type_tag, length = _FPT_BLOCK_PREFIX.unpack(prefix)
        available = self.size - block * self.block_size - _FPT_BLOCK_PREFIX.size
        if length > available:
            raise TruncatedMemoError(
                f"fpt block {block}: declared length {length} exceeds the {max(available, 0)} bytes left in the file",
                block=block,
            )
        data = self.stream.read(length)
        if len(data) < length:
            raise TruncatedMemoError(
                f"fpt block {block}: expected {length} bytes, got {len(data)}", block=block
            )
        try:
            kind = MemoType(type_tag)
        except ValueError:
            logger.debug(f"fpt block {block}: unknown block type {type_tag}, treated as binary")
            kind = MemoType.OBJECT
        return MemoBlock(kind, data)


class MemoCache:
    """Bounded LRU cache of memo blocks keyed by block index."""

    def __init__(self, resolver: DbtMemoFile | FptMemoFile, size: int) -> None:
        self.resolver = resolver
        self.size = size
        self._blocks: OrderedDict[int, MemoBlock] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def read_block(self, block: int) -> MemoBlock:
        cached = self._blocks.get(block)
        if cached is not None:
            self._blocks.move_to_end(block)
            self.hits += 1
            return cached
        self.misses += 1
        result = self.resolver.read_block(block)
        self._blocks[block] = result
        if len(self._blocks) > self.size:
            self._blocks.popitem(last=False)
        return result

    def __len__(self) -> int:
        return len(self._blocks)


MemoResolver = Union[DbtMemoFile, FptMemoFile, MemoCache]


def open_memo(stream: BinaryIO, header: TableHeader, options: ReaderOptions | None = None) -> MemoResolver | None:
    """Build the resolver matching ``header.memo_dialect``.

    Returns None when the table declares no memo file.

    Raises:
        StructuralError: the memo file is shorter than its header
    """
    options = options or ReaderOptions()
    resolver: DbtMemoFile | FptMemoFile
    if header.memo_dialect is MemoDialect.DBT:
        resolver = DbtMemoFile(
            stream,
            dbase4=header.dialect is Dialect.DBASE4,
            scan_limit=options.memo_scan_limit,
        )
    elif header.memo_dialect is MemoDialect.FPT:
        resolver = FptMemoFile(stream)
    else:
        return None
    logger.debug(
        f"memo dialect={header.memo_dialect.value} block_size={resolver.block_size} "
        f"next_free_block={resolver.next_free_block}"
    )
    if options.memo_cache_size > 0:
        return MemoCache(resolver, options.memo_cache_size)
    return resolver
