import dataclasses
from typing import Any

from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.serializable import Members, MemberSerDe


@dataclasses.dataclass
class _FmtReader:
    fname: str
    fmt: str
    outtype: type

    def __call__(
        self, members: Members, buffer: ReadBuffer
    ) -> tuple[Members, ReadBuffer]:
        tup, buffer = buffer.unpack(self.fmt)
        members[self.fname] = self.outtype(*tup)
        return members, buffer


@dataclasses.dataclass
class _FmtWriter:
    fname: str
    fmt: str

    def __call__(self, obj: Any, buffer: WBuffer) -> None:
        value = getattr(obj, self.fname)
        if dataclasses.is_dataclass(value):
            buffer.pack(self.fmt, *dataclasses.astuple(value))
        else:
            buffer.pack(self.fmt, value)


@dataclasses.dataclass
class Fmt(MemberSerDe):
    """A class to hold the format of a field."""

    fmt: str

    def build_reader(self, fname: str, ftype: type):
        return _FmtReader(fname, self.fmt, ftype)

    def build_writer(self, fname: str, ftype: type):  # noqa: ARG002
        return _FmtWriter(fname, self.fmt)
