from __future__ import annotations

import io
import logging
import struct

import pytest

import rootfileio
from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TFile import FileHeader
from rootfileio.bootstrap.TKey import TKey
from rootfileio.bootstrap.TList import TList, TObjArray
from rootfileio.bootstrap.TObject import TObjString, _new_TObject_members
from rootfileio.bootstrap.TStreamerInfo import TStreamerInfo
from rootfileio.buffer import RBuffer
from rootfileio.directory import Directory
from rootfileio.dispatch import Decoded
from rootfileio.errors import BootstrapError, FormatError, RangeError, ShortReadError
from rootfileio.registry import StreamerRegistry

SEEKINFO_OFFSET = 37


def _make_file() -> bytearray:
    stream = io.BytesIO()
    with rootfileio.create(stream) as f:
        f.put("obj", TObjString.new(b"v"))
    return bytearray(stream.getvalue())


def _open(data: bytearray) -> rootfileio.ROOTFile:
    return rootfileio.open(io.BytesIO(bytes(data)))


def _open_with(data: bytearray, registry: StreamerRegistry) -> rootfileio.ROOTFile:
    return rootfileio.open(io.BytesIO(bytes(data)), registry=registry)


def test_stages_run_in_order(monkeypatch):
    calls: list[str] = []
    read_dir_info, read_keys = Directory.read_dir_info, Directory.read_keys

    def spy_dir_info(self):
        calls.append("directory infos")
        read_dir_info(self)

    def spy_keys(self):
        calls.append("file keys")
        read_keys(self)

    monkeypatch.setattr(Directory, "read_dir_info", spy_dir_info)
    monkeypatch.setattr(Directory, "read_keys", spy_keys)
    with _open(_make_file()) as f:
        assert f.keys()
    assert calls == ["directory infos", "file keys"]


def test_bad_streamer_info_pointer(monkeypatch):
    data = _make_file()
    data[SEEKINFO_OFFSET : SEEKINFO_OFFSET + 4] = bytes(4)
    calls = []
    monkeypatch.setattr(Directory, "read_keys", lambda self: calls.append(self))
    with pytest.raises(BootstrapError) as excinfo:
        _open(data)
    assert excinfo.value.stage == "streamer infos"
    assert isinstance(excinfo.value.__cause__, RangeError)
    assert calls == []


def test_streamer_info_pointer_past_end():
    data = _make_file()
    data[SEEKINFO_OFFSET : SEEKINFO_OFFSET + 4] = struct.pack(">i", len(data) + 10)
    with pytest.raises(BootstrapError) as excinfo:
        _open(data)
    assert isinstance(excinfo.value.__cause__, RangeError)


def test_bad_directory_record():
    data = _make_file()
    # fNbytesName
    data[28:32] = struct.pack(">i", 1_000_000)
    with pytest.raises(BootstrapError) as excinfo:
        _open(data)
    assert excinfo.value.stage == "directory infos"
    assert isinstance(excinfo.value.__cause__, FormatError)


def test_bad_keys_list():
    data = _make_file()
    header = FileHeader.decode(RBuffer.from_bytes(bytes(data)))
    # fSeekKeys follows the 18 byte TDirectory header and fSeekDir, fSeekParent
    pos = header.fBEGIN + header.fNbytesName + 26
    data[pos : pos + 4] = struct.pack(">i", 1)
    with pytest.raises(BootstrapError) as excinfo:
        _open(data)
    assert excinfo.value.stage == "file keys"
    assert excinfo.value.__cause__ is not None


def test_bad_magic_is_not_wrapped():
    data = _make_file()
    data[:4] = b"toor"
    with pytest.raises(FormatError) as excinfo:
        _open(data)
    assert not isinstance(excinfo.value, BootstrapError)


def test_truncated_file():
    data = _make_file()[:40]
    with pytest.raises(FormatError) as excinfo:
        _open(data)
    assert isinstance(excinfo.value.__cause__, ShortReadError)


def test_error_names_file(tmp_path):
    path = tmp_path / "broken.root"
    data = _make_file()
    data[SEEKINFO_OFFSET : SEEKINFO_OFFSET + 4] = bytes(4)
    path.write_bytes(bytes(data))
    with pytest.raises(BootstrapError) as excinfo:
        rootfileio.open(path)
    assert excinfo.value.path == str(path)
    assert str(path) in str(excinfo.value)
    assert "streamer infos" in str(excinfo.value)


def _info(name: bytes, version: int, checksum: int) -> TStreamerInfo:
    return TStreamerInfo(
        **_new_TObject_members(),
        fName=TString(name),
        fTitle=TString(b""),
        fCheckSum=checksum,
        fClassVersion=version,
        fObjects=TObjArray(
            **_new_TObject_members(),
            fName=TString(b""),
            fSize=0,
            fLowerBound=0,
            objects=(),
        ),
    )


def test_streamer_info_keeps_descriptors(monkeypatch, caplog):
    foo, bar = _info(b"TFoo", 1, 0x11), _info(b"TBar", 2, 0x22)
    stored = TList.new(
        [foo, TObjString.new(b"not a descriptor"), bar, _info(b"TFoo", 1, 0x11)]
    )
    data = _make_file()
    value = TKey.value

    def stored_value(self, fetch_data=None):
        if self.fName.fString == b"StreamerInfo":
            return Decoded.of(stored)
        return value(self, fetch_data)

    monkeypatch.setattr(TKey, "value", stored_value)
    caplog.set_level(logging.DEBUG, logger="rootfileio.file")
    registry = StreamerRegistry()
    with _open_with(data, registry) as f:
        infos = f.streamer_info()
        assert [info.fName.fString for info in infos] == [b"TFoo", b"TBar", b"TFoo"]
        assert infos[0] is foo
        assert [k.name() for k in f.keys()] == ["obj"]
    assert "skipping TObjString" in caplog.text
    assert len(registry) == 2
    assert registry.get(b"TFoo") is foo
    assert registry.get(b"TBar") is bar

    # a second file listing the same classes adds nothing
    with _open_with(data, registry) as f:
        assert len(f.streamer_info()) == 3
    assert len(registry) == 2
