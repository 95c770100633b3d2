"""Decompression of key payloads.

A compressed payload is a suite of chunks. Each chunk starts with a 9 byte
header: a two letter algorithm tag, a method byte, then the compressed and
uncompressed sizes as 3 byte little endian integers. LZ4 chunks carry the
xxhash64 digest of their compressed bytes in front of them, counted in the
compressed size.
Reference: R__unzip in https://github.com/root-project/root/blob/master/core/zip/src/RZip.cxx
"""

from functools import partial
from typing import Annotated, Callable, Optional

import cramjam  # type: ignore[import-not-found]
import xxhash  # type: ignore[import-not-found]

from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.errors import FormatError, ShortReadError
from rootfileio.serializable import (
    Members,
    MemberSerDe,
    ROOTSerializable,
    serializable,
)
from rootfileio.structutil import Fmt

LZ4_CHECKSUM_SIZE = 8

Decompressor = Callable[[memoryview, memoryview], int]
"""Fill the output view from the compressed view, return the bytes written"""


def _read_le24(fname: str, members: Members, buffer: ReadBuffer):
    data, buffer = buffer.consume(3)
    members[fname] = int.from_bytes(data, "little")
    return members, buffer


def _write_le24(fname: str, obj: ROOTSerializable, buffer: WBuffer) -> None:
    buffer.write_bytes(getattr(obj, fname).to_bytes(3, "little"))


class LittleEndian24(MemberSerDe):
    """A 3 byte little endian size"""

    def build_reader(self, fname: str, ftype: type):
        assert ftype is int
        return partial(_read_le24, fname)

    def build_writer(self, fname: str, ftype: type):  # noqa: ARG002
        return partial(_write_le24, fname)


def _lz4_decompress_into(data: memoryview, out: memoryview) -> int:
    # https://github.com/milesgranger/cramjam/issues/216
    block = cramjam.lz4.decompress_block(data, output_len=len(out))
    out[: len(block)] = block
    return len(block)


DECOMPRESSORS: dict[bytes, Decompressor] = {
    b"ZL": cramjam.zlib.decompress_into,
    b"XZ": cramjam.xz.decompress_into,
    b"ZS": cramjam.zstd.decompress_into,
    b"L4": _lz4_decompress_into,
}


@serializable
class ChunkHeader(ROOTSerializable):
    fAlgorithm: Annotated[bytes, Fmt("2s")]
    """ZL (zlib), XZ (lzma), ZS (zstd) or L4 (lz4)"""
    fMethod: Annotated[int, Fmt("B")]
    fCompressedSize: Annotated[int, LittleEndian24()]
    fUncompressedSize: Annotated[int, LittleEndian24()]


@serializable
class Chunk(ROOTSerializable):
    header: ChunkHeader
    checksum: Optional[bytes]
    payload: memoryview

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        header, buffer = ChunkHeader.read(buffer)
        if header.fAlgorithm not in DECOMPRESSORS:
            msg = f"Unsupported compression algorithm {header.fAlgorithm!r}"
            raise NotImplementedError(msg)
        nbytes = header.fCompressedSize
        checksum = None
        if header.fAlgorithm == b"L4":
            checksum, buffer = buffer.consume(LZ4_CHECKSUM_SIZE)
            nbytes -= LZ4_CHECKSUM_SIZE
        if nbytes > len(buffer):
            raise ShortReadError(nbytes, len(buffer))
        payload, buffer = buffer.consume_view(nbytes)
        members["header"] = header
        members["checksum"] = checksum
        members["payload"] = payload
        return members, buffer

    def decompress_into(self, out: memoryview) -> None:
        if self.checksum is not None:
            digest = xxhash.xxh64(self.payload, seed=0).digest()
            if digest != self.checksum:
                msg = f"LZ4 checksum mismatch: {digest!r} != {self.checksum!r}"
                raise FormatError(msg)
        n = DECOMPRESSORS[self.header.fAlgorithm](self.payload, out)
        if n != self.header.fUncompressedSize:
            msg = f"Chunk decompressed to {n} bytes, expected {self.header.fUncompressedSize}"
            raise FormatError(msg)


def decompress(buffer: ReadBuffer, objlen: int) -> memoryview:
    """Decompress all the chunks in buffer, which must add up to objlen bytes."""
    out = memoryview(bytearray(objlen))
    pos = 0
    while buffer:
        chunk, buffer = Chunk.read(buffer)
        size = chunk.header.fUncompressedSize
        if pos + size > objlen:
            msg = f"Compressed chunks hold more than fObjlen={objlen} bytes"
            raise FormatError(msg)
        chunk.decompress_into(out[pos : pos + size])
        pos += size
    if pos != objlen:
        msg = f"Compressed chunks hold {pos} bytes, expected fObjlen={objlen}"
        raise FormatError(msg)
    return out
