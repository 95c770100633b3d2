from __future__ import annotations

import struct

import pytest

from rootfileio.buffer import RBuffer, ReadBuffer, WBuffer
from rootfileio.errors import ShortReadError


def test_rbuffer_big_endian():
    r = RBuffer.from_bytes(bytes.fromhex("01 0002 00000003 0000000000000004 ff"))
    assert r.read_u8() == 1
    assert r.read_u16() == 2
    assert r.read_i32() == 3
    assert r.read_i64() == 4
    assert r.read_i8() == -1
    assert r.remaining() == 0
    r.check()


def test_rbuffer_error_is_sticky():
    r = RBuffer.from_bytes(b"\x00\x01\x02")
    assert r.read_u16() == 1
    assert r.read_i32() == 0
    assert isinstance(r.err, ShortReadError)
    assert (r.err.expected, r.err.actual) == (4, 1)
    # the byte left would fit, but reads after an error are no-ops
    assert r.read_u8() == 0
    assert r.read_bytes(1) == b""
    assert r.pos == 2
    with pytest.raises(ShortReadError):
        r.check()


@pytest.mark.parametrize("length", [0, 1, 254, 255, 300])
def test_string_length_prefix(length: int):
    data = b"x" * length
    w = WBuffer()
    w.write_string(data)
    w.check()
    out = w.getvalue()
    if length < 255:
        assert out[0] == length
        assert len(out) == length + 1
    else:
        assert out[:5] == b"\xff" + struct.pack(">i", length)
        assert len(out) == length + 5
    r = RBuffer.from_bytes(out)
    assert r.read_string() == data
    r.check()


def test_wbuffer_error_is_sticky():
    w = WBuffer()
    w.write_u8(1)
    w.write_i16(1 << 20)
    w.write_u8(2)
    assert w.getvalue() == b"\x01"
    assert isinstance(w.err, struct.error)
    with pytest.raises(struct.error):
        w.check()


def test_wbuffer_patch():
    w = WBuffer()
    w.write_u32(0)
    w.write_bytes(b"abc")
    w.patch(0, ">I", 3)
    assert w.getvalue() == b"\x00\x00\x00\x03abc"
    assert w.pos == 7


def test_readbuffer_positions():
    buffer = ReadBuffer(memoryview(b"\x00\x01\x02\x03\x04\x05"), 100, 0)
    (value,), rest = buffer.unpack(">h")
    assert value == 1
    assert (rest.abspos, rest.relpos, len(rest)) == (102, 2, 4)
    data, rest = rest.consume(3)
    assert data == b"\x02\x03\x04"
    assert (rest.abspos, rest.relpos) == (105, 5)
    with pytest.raises(ShortReadError):
        rest.unpack(">i")
    with pytest.raises(ShortReadError):
        rest.consume(2)
