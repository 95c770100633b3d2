"""The byte store a ROOTFile reads from and writes to.

A file only needs positioned reads and writes, a seek and a close from its
backing store, so anything implementing the Storage protocol (a local file,
an in-memory buffer, a remote object) can hold a ROOT file.
"""

import io
from typing import BinaryIO, Protocol


class Storage(Protocol):
    def read_at(self, size: int, offset: int) -> bytes:
        """Read up to size bytes starting at offset."""
        ...

    def write_at(self, data: bytes, offset: int) -> int:
        """Write data starting at offset, return the number of bytes written."""
        ...

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the sequential position, return the new position."""
        ...

    def close(self) -> None: ...


class StreamStorage:
    """Storage on top of a seekable binary stream (file object, BytesIO, ...).

    Positioned reads and writes leave the stream position untouched.
    """

    stream: BinaryIO

    def __init__(self, stream: BinaryIO, *, owned: bool = True):
        self.stream = stream
        self.owned = owned
        """Close the stream when the storage is closed"""

    def read_at(self, size: int, offset: int) -> bytes:
        pos = self.stream.tell()
        try:
            self.stream.seek(offset)
            return self.stream.read(size)
        finally:
            self.stream.seek(pos)

    def write_at(self, data: bytes, offset: int) -> int:
        pos = self.stream.tell()
        try:
            self.stream.seek(offset)
            return self.stream.write(data)
        finally:
            self.stream.seek(pos)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self.stream.seek(offset, whence)

    def close(self) -> None:
        if self.owned:
            self.stream.close()
        else:
            self.stream.flush()
