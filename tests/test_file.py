from __future__ import annotations

import io
import struct
import sys
from pathlib import Path

import cramjam  # type: ignore[import-not-found]
import pytest

import rootfileio
from rootfileio.blocks import FreeBlock, FreeBlocks
from rootfileio.bootstrap.compression import ChunkHeader, decompress
from rootfileio.bootstrap.TKey import TKey
from rootfileio.bootstrap.TList import TList
from rootfileio.bootstrap.TObject import TNamed, TObjString
from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.constants import ROOT_VERSION, kBEGIN, kLargeFileFlag, kStartBigFile
from rootfileio.directory import parse_namecycle
from rootfileio.dispatch import ObjectKind
from rootfileio.errors import FileClosedError, FormatError, KeyNotFoundError


def _make_file(**objects) -> bytes:
    stream = io.BytesIO()
    with rootfileio.create(stream) as f:
        for name, obj in objects.items():
            f.put(name, obj)
    return stream.getvalue()


def test_create_and_reopen(tmp_path: Path):
    path = tmp_path / "empty.root"
    with rootfileio.create(path, title="A test file") as f:
        assert f.writable
        assert f.version() == ROOT_VERSION
        assert f.header.fBEGIN == kBEGIN

    assert path.read_bytes()[:4] == b"root"
    with rootfileio.open(path) as f:
        assert not f.writable
        assert f.header.fBEGIN == kBEGIN
        assert f.header.fUnits == 4
        assert f.header.fCompress == 1
        assert f.version() == ROOT_VERSION
        assert f.name() == str(path)
        assert f.title() == "A test file"
        assert f.class_name() == "TFile"
        assert f.keys() == []
        assert f.streamer_info() == ()
        assert f.header.nfree == 1
        free = f.free_segments()
        assert list(free) == [FreeBlock(f.header.fEND, kStartBigFile)]
        assert f.dir.record is not None
        assert f.dir.record.fSeekDir == kBEGIN


def test_create_in_memory():
    data = _make_file()
    assert data[:4] == b"root"
    with rootfileio.open(io.BytesIO(data)) as f:
        assert f.name() == ""
        assert f.keys() == []
        assert f.header.fEND == len(data)


def test_put_get(tmp_path: Path):
    path = tmp_path / "objects.root"
    with rootfileio.create(path) as f:
        f.put("greeting", TObjString.new(b"hello"))
        f.put("greeting", TObjString.new(b"hello again"))
        f.put("named", TNamed.new(b"a name", b"a title"), title="some title")
        assert [k.cycle() for k in f.keys()] == [1, 2, 1]
        assert f.get("greeting;1").fString.fString == b"hello"

    with rootfileio.open(path) as f:
        assert [(k.name(), k.cycle()) for k in f.keys()] == [
            ("greeting", 1),
            ("greeting", 2),
            ("named", 1),
        ]
        assert f.get("greeting").fString.fString == b"hello again"
        assert f.get("greeting;1").fString.fString == b"hello"
        assert f.get("greeting;9999").fString.fString == b"hello again"
        named = f.get("named")
        assert isinstance(named, TNamed)
        assert named.fName.fString == b"a name"
        assert named.fTitle.fString == b"a title"
        key = f.dir.find("named")
        assert key.class_name() == "TNamed"
        assert key.fTitle.fString == b"some title"
        assert key.fSeekPdir == kBEGIN
        assert not key.is_compressed()
        with pytest.raises(KeyNotFoundError):
            f.get("greeting;3")


def test_put_list():
    data = _make_file(
        things=TList.new([TObjString.new(b"a"), TNamed.new(b"n", b"t")]),
    )
    with rootfileio.open(io.BytesIO(data)) as f:
        key = f.keys()[0]
        assert key.class_name() == "TList"
        value = key.value()
        assert value.kind is ObjectKind.LIST
        items = value.obj.tagged()
        assert [item.kind for item in items] == [ObjectKind.OBJECT, ObjectKind.OBJECT]
        assert items[0].obj.fString.fString == b"a"
        assert items[1].obj.fName.fString == b"n"


def test_delete(tmp_path: Path):
    path = tmp_path / "delete.root"
    with rootfileio.create(path) as f:
        first = f.put("a", TObjString.new(b"x"))
        f.put("b", TObjString.new(b"y"))
        gap = FreeBlock(first.fSeekKey, first.fSeekKey + first.header.fNbytes - 1)
        f.delete("a")
        assert [k.name() for k in f.keys()] == ["b"]
        assert f.blocks[0] == gap
        with pytest.raises(KeyNotFoundError):
            f.get("a")
        with pytest.raises(KeyNotFoundError):
            f.delete("a")
        with pytest.raises(FileClosedError):
            first.read_object()

    with path.open("rb") as fh:
        fh.seek(gap.first)
        (marker,) = struct.unpack(">i", fh.read(4))
    assert marker == -gap.size()

    with rootfileio.open(path) as f:
        assert [k.name() for k in f.keys()] == ["b"]
        free = f.free_segments()
        assert len(free) == f.header.nfree == 2
        assert free[0] == gap
        assert free.last.first == f.header.fEND


def test_delete_reuses_space():
    stream = io.BytesIO()
    with rootfileio.create(stream) as f:
        first = f.put("a", TObjString.new(b"x" * 100))
        f.put("b", TObjString.new(b"y"))
        f.delete("a")
        again = f.put("a", TObjString.new(b"x" * 100))
        assert again.fSeekKey == first.fSeekKey
        assert again.cycle() == 1


def test_written_version_can_be_patched():
    data = bytearray(_make_file(obj=TObjString.new(b"v")))
    data[4:8] = struct.pack(">i", 60600)
    with rootfileio.open(io.BytesIO(bytes(data))) as f:
        assert f.version() == 60600
        assert f.version_info().major == 6
        assert f.header.fBEGIN == kBEGIN
        assert f.header.nfree == 1
        assert f.streamer_info() == ()
        assert [k.name() for k in f.keys()] == ["obj"]
        with pytest.raises(KeyNotFoundError) as excinfo:
            f.get("missing;1")
        assert not isinstance(excinfo.value, FormatError)


@pytest.mark.skipif(sys.platform == "win32", reason="needs sparse files")
def test_close_past_small_file_limit(tmp_path: Path):
    path = tmp_path / "large.root"
    end = 2_200_000_000
    with rootfileio.create(path) as f:
        f.put("obj", TObjString.new(b"v"))
        # the trailer goes past 2**31 bytes
        f.blocks = FreeBlocks([FreeBlock(end, 3_000_000_000)])

    with path.open("rb") as fh:
        (version,) = struct.unpack(">i", fh.read(8)[4:])
    assert version == ROOT_VERSION + kLargeFileFlag

    with rootfileio.open(path) as f:
        assert f.version() == ROOT_VERSION
        assert f.header.is_large()
        assert f.header.fEND == path.stat().st_size
        assert f.header.fSeekInfo >= end
        assert f.header.fSeekFree >= end
        assert f.dir.record is not None
        assert f.dir.record.header.is_large()
        assert f.dir.record.fSeekKeys >= end
        assert f.get("obj").fString.fString == b"v"
        free = f.free_segments()
        assert len(free) == f.header.nfree
        assert free.last.first == f.header.fEND


def test_keys_after_close():
    f = rootfileio.open(io.BytesIO(_make_file(obj=TObjString.new(b"v"))))
    key = f.keys()[0]
    assert key.read_object().fString.fString == b"v"
    assert key.value().kind is ObjectKind.OBJECT
    f.close()
    f.close()
    assert f.closed
    assert "closed" in repr(f)
    with pytest.raises(FileClosedError):
        key.read_object()
    with pytest.raises(FileClosedError):
        _ = key.file
    with pytest.raises(FileClosedError):
        f.get("obj")
    with pytest.raises(FileClosedError):
        f.keys()


def test_stream_left_open():
    stream = io.BytesIO(_make_file())
    with rootfileio.open(stream):
        pass
    assert not stream.closed


def test_read_only():
    with rootfileio.open(io.BytesIO(_make_file())) as f:
        with pytest.raises(io.UnsupportedOperation):
            f.put("obj", TObjString.new(b"v"))
        with pytest.raises(io.UnsupportedOperation):
            f.write_at(b"\x00", 0)


def test_sequential_read():
    with rootfileio.open(io.BytesIO(_make_file())) as f:
        assert f.tell() == 0
        assert f.read(4) == b"root"
        assert f.tell() == 4
        assert f.read_at(4, 0) == b"root"
        assert f.tell() == 4
        f.seek(0)
        assert f.tell() == 0


def test_compressed_record():
    payload = WBuffer()
    TObjString.new(b"z" * 200).write(payload)
    raw = payload.getvalue()
    compressed = bytes(cramjam.zlib.compress(raw))
    header = WBuffer()
    ChunkHeader(
        fAlgorithm=b"ZL",
        fMethod=8,
        fCompressedSize=len(compressed),
        fUncompressedSize=len(raw),
    ).write(header)
    chunk = header.getvalue() + compressed
    assert chunk[:3] == b"ZL\x08"
    assert chunk[3:6] == len(compressed).to_bytes(3, "little")

    key = TKey.new(
        classname=b"TObjString",
        name=b"z",
        title=b"",
        objlen=len(raw),
        seekkey=0,
        seekpdir=0,
    )
    key.header.fNbytes = key.header.fKeylen + len(chunk)
    assert key.is_compressed()
    buffer = WBuffer()
    key.write(buffer)
    record = buffer.getvalue() + chunk

    def fetch_data(seek: int, size: int) -> ReadBuffer:
        return ReadBuffer(memoryview(record[seek : seek + size]), seek, 0)

    obj = key.read_object(fetch_data)
    assert isinstance(obj, TObjString)
    assert obj.fString.fString == b"z" * 200


@pytest.mark.parametrize(
    ("namecycle", "expected"),
    [
        ("hist", ("hist", None)),
        ("hist;", ("hist", None)),
        ("hist;2", ("hist", 2)),
        ("hist;9999", ("hist", None)),
    ],
)
def test_parse_namecycle(namecycle: str, expected):
    assert parse_namecycle(namecycle) == expected


def test_parse_namecycle_invalid():
    with pytest.raises(ValueError, match="cycle"):
        parse_namecycle("hist;two")


def test_unsupported_compression():
    buffer = ReadBuffer(memoryview(b"CS\x08\x02\x00\x00\x0a\x00\x00xx"), 0, 0)
    with pytest.raises(NotImplementedError, match="CS"):
        decompress(buffer, 10)


def test_compressed_size_mismatch():
    raw = b"abc" * 50
    compressed = bytes(cramjam.zlib.compress(raw))
    header = WBuffer()
    ChunkHeader(
        fAlgorithm=b"ZL",
        fMethod=8,
        fCompressedSize=len(compressed),
        fUncompressedSize=len(raw),
    ).write(header)
    data = header.getvalue() + compressed
    assert bytes(decompress(ReadBuffer(memoryview(data), 0, 0), len(raw))) == raw
    with pytest.raises(FormatError):
        decompress(ReadBuffer(memoryview(data), 0, 0), len(raw) + 1)
    with pytest.raises(FormatError):
        decompress(ReadBuffer(memoryview(data), 0, 0), len(raw) - 1)
