import struct
from typing import Any, Callable, Optional

from rootfileio.errors import ShortReadError


class ReadBuffer:
    """A ReadBuffer is a memoryview that keeps track of the absolute and relative
    positions of the data it contains.

    Attributes:
        data (memoryview): The data contained in the buffer.
        abspos (int | None): The absolute position of the buffer in the file.
            If the buffer was created from a compressed buffer, this will be None.
        relpos (int): The relative position of the buffer from the start of the TKey.
        local_refs (dict[int, bytes], optional): A dictionary of local references that may
            be found in the buffer (for use reading StreamHeader data)
    """

    data: memoryview
    abspos: Optional[int]
    relpos: int
    local_refs: dict[int, bytes]

    def __init__(
        self,
        data: memoryview,
        abspos: Optional[int],
        relpos: int,
        local_refs: Optional[dict[int, bytes]] = None,
    ):
        self.data = data
        self.abspos = abspos
        self.relpos = relpos
        self.local_refs = {} if local_refs is None else local_refs

    def __getitem__(self, key: slice):
        """Get a slice of the buffer."""
        start: int = key.start or 0
        if start > len(self.data):
            msg = f"Cannot get slice {key} from buffer of length {len(self.data)}"
            raise IndexError(msg)
        return ReadBuffer(
            self.data[key],
            self.abspos + start if self.abspos is not None else None,
            self.relpos + start,
            self.local_refs,
        )

    def __len__(self) -> int:
        """Get the length of the buffer."""
        return len(self.data)

    def __repr__(self) -> str:
        """Get a string representation of the buffer."""
        return (
            f"ReadBuffer size {len(self.data)} at abspos={self.abspos}, relpos={self.relpos}"
            "\n  data[:0x100]: "
            + "".join(
                f"\n    0x{i:03x} | "
                + self.data[i : i + 16].hex(sep=" ")
                + " | "
                + "".join(
                    chr(c) if 32 <= c < 127 else "." for c in self.data[i : i + 16]
                )
                for i in range(0, min(256, len(self)), 16)
            )
        )

    def __bool__(self) -> bool:
        return bool(self.data)

    def unpack(self, fmt: str) -> tuple[tuple[Any, ...], "ReadBuffer"]:
        """Unpack the buffer according to the given format."""
        size = struct.calcsize(fmt)
        if len(self.data) < size:
            raise ShortReadError(size, len(self.data))
        out = struct.unpack(fmt, self.data[:size])
        return out, self[size:]

    def consume(self, size: int) -> tuple[bytes, "ReadBuffer"]:
        """Consume the given number of bytes from the buffer.

        Returns a copy of the data and the remaining buffer.
        """
        if size < 0:
            msg = (
                f"Cannot consume a negative number of bytes: {size=}, {self.__len__()=}"
            )
            raise ValueError(msg)
        if size > len(self.data):
            raise ShortReadError(size, len(self.data))
        out = self.data[:size].tobytes()
        return out, self[size:]

    def consume_view(self, size: int) -> tuple[memoryview, "ReadBuffer"]:
        """Consume the given number of bytes and return a view (not a copy).

        Use consume() to get a copy.
        """
        return self.data[:size], self[size:]


DataFetcher = Callable[[int, int], ReadBuffer]


class RBuffer:
    """A cursor over a ReadBuffer with a sticky error.

    The first read that runs past the end of the data stores a ShortReadError
    in `err`. From then on every read returns a zero value and leaves the
    cursor alone, so a long sequence of reads can be checked once at the end
    with `check()`.
    """

    buffer: ReadBuffer
    err: Optional[ShortReadError]

    def __init__(self, buffer: ReadBuffer):
        self.buffer = buffer
        self.err = None

    @classmethod
    def from_bytes(cls, data: bytes, abspos: Optional[int] = 0) -> "RBuffer":
        return cls(ReadBuffer(memoryview(data), abspos, 0))

    @property
    def pos(self) -> int:
        """Number of bytes read so far."""
        return self.buffer.relpos

    def remaining(self) -> int:
        return len(self.buffer)

    def check(self) -> None:
        """Raise the stored error, if any."""
        if self.err is not None:
            raise self.err

    def unpack(self, fmt: str) -> tuple[Any, ...]:
        size = struct.calcsize(fmt)
        if self.err is None and len(self.buffer) < size:
            self.err = ShortReadError(size, len(self.buffer))
        if self.err is not None:
            return struct.unpack(fmt, bytes(size))
        out, self.buffer = self.buffer.unpack(fmt)
        return out

    def read_i8(self) -> int:
        return self.unpack(">b")[0]  # type: ignore[no-any-return]

    def read_u8(self) -> int:
        return self.unpack(">B")[0]  # type: ignore[no-any-return]

    def read_i16(self) -> int:
        return self.unpack(">h")[0]  # type: ignore[no-any-return]

    def read_u16(self) -> int:
        return self.unpack(">H")[0]  # type: ignore[no-any-return]

    def read_i32(self) -> int:
        return self.unpack(">i")[0]  # type: ignore[no-any-return]

    def read_u32(self) -> int:
        return self.unpack(">I")[0]  # type: ignore[no-any-return]

    def read_i64(self) -> int:
        return self.unpack(">q")[0]  # type: ignore[no-any-return]

    def read_u64(self) -> int:
        return self.unpack(">Q")[0]  # type: ignore[no-any-return]

    def read_bytes(self, size: int) -> bytes:
        if self.err is None and len(self.buffer) < size:
            self.err = ShortReadError(size, len(self.buffer))
        if self.err is not None:
            return b""
        out, self.buffer = self.buffer.consume(size)
        return out

    def read_string(self) -> bytes:
        """Read a string with a TString length prefix."""
        length = self.read_u8()
        if length == 255:
            length = self.read_i32()
        return self.read_bytes(length)


class WBuffer:
    """A growable big-endian output buffer with a sticky error.

    The first value that cannot be packed (e.g. out of range for its width)
    is stored in `err` and all later writes are ignored.
    """

    data: bytearray
    err: Optional[Exception]

    def __init__(self):
        self.data = bytearray()
        self.err = None

    def __len__(self) -> int:
        return len(self.data)

    @property
    def pos(self) -> int:
        """Number of bytes written so far."""
        return len(self.data)

    def getvalue(self) -> bytes:
        return bytes(self.data)

    def check(self) -> None:
        """Raise the stored error, if any."""
        if self.err is not None:
            raise self.err

    def pack(self, fmt: str, *values: Any) -> None:
        if self.err is not None:
            return
        try:
            self.data += struct.pack(fmt, *values)
        except struct.error as ex:
            self.err = ex

    def patch(self, pos: int, fmt: str, *values: Any) -> None:
        """Overwrite already written bytes at `pos`, e.g. a byte count."""
        if self.err is not None:
            return
        try:
            struct.pack_into(fmt, self.data, pos, *values)
        except struct.error as ex:
            self.err = ex

    def write_i8(self, value: int) -> None:
        self.pack(">b", value)

    def write_u8(self, value: int) -> None:
        self.pack(">B", value)

    def write_i16(self, value: int) -> None:
        self.pack(">h", value)

    def write_u16(self, value: int) -> None:
        self.pack(">H", value)

    def write_i32(self, value: int) -> None:
        self.pack(">i", value)

    def write_u32(self, value: int) -> None:
        self.pack(">I", value)

    def write_i64(self, value: int) -> None:
        self.pack(">q", value)

    def write_u64(self, value: int) -> None:
        self.pack(">Q", value)

    def write_bytes(self, data: bytes) -> None:
        if self.err is None:
            self.data += data

    def write_string(self, data: bytes) -> None:
        """Write a string with a TString length prefix."""
        if len(data) < 255:
            self.write_u8(len(data))
        else:
            self.write_u8(255)
            self.write_i32(len(data))
        self.write_bytes(data)
