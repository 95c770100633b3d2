from typing import Annotated, Union

from rootfileio.bootstrap.streamedobject import (
    Ref,
    read_streamed_item,
    write_streamed_item,
)
from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TObject import TObject, _new_TObject_members
from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.dispatch import DICTIONARY, Decoded, ObjectKind
from rootfileio.serializable import Members, ROOTSerializable, serializable
from rootfileio.structutil import Fmt


@serializable
class TCollection(TObject):
    _SkipHeader = True
    fName: TString
    fSize: Annotated[int, Fmt(">i")]


DICTIONARY["TCollection"] = TCollection


@serializable
class TSeqCollection(TCollection):
    _SkipHeader = True


DICTIONARY["TSeqCollection"] = TSeqCollection


@serializable
class TList(TSeqCollection):
    """TList container class.
    Reference: https://root.cern/doc/master/streamerinfo.html (TList section)
    """

    _ClassVersion = 5

    items: list[Union[TObject, Ref[TObject]]]
    """List of objects."""

    @classmethod
    def new(cls, items: list[TObject], name: bytes = b"") -> "TList":
        return cls(
            **_new_TObject_members(),
            fName=TString(name),
            fSize=len(items),
            items=list(items),
        )

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        items: list[Union[TObject, Ref[TObject]]] = []
        fSize: int = members["fSize"]
        for _ in range(fSize):
            item, buffer = read_streamed_item(buffer)
            if not (isinstance(item, (TObject, Ref))):
                msg = f"Expected TObject but got {item!r}"
                raise ValueError(msg)
            # No idea why there is a null pad byte here
            pad, buffer = buffer.consume(1)
            if pad != b"\x00":
                if pad == b"\x01":
                    # TODO: understand this case (e.g. uproot-issue-350.root)
                    (mystery,), buffer = buffer.unpack(">B")
                else:
                    msg = f"Unexpected pad byte in TList: {pad!r}"
                    raise ValueError(msg)
            items.append(item)
        members["items"] = items
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        if self.fSize != len(self.items):
            msg = f"TList fSize {self.fSize} does not match {len(self.items)} items"
            raise ValueError(msg)
        for item in self.items:
            write_streamed_item(buffer, item)
            # empty option string
            buffer.write_u8(0)

    def tagged(self) -> list[Decoded]:
        """The items of the list, each tagged with its kind."""
        return [
            Decoded(ObjectKind.REFERENCE, item)
            if isinstance(item, Ref)
            else Decoded.of(item)
            for item in self.items
        ]


DICTIONARY["TList"] = TList


@serializable
class TObjArray(TSeqCollection):
    """TObjArray container class."""

    fLowerBound: int
    """Lower bound of the array."""
    objects: tuple[ROOTSerializable, ...]
    """List of objects."""

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        (members["fLowerBound"],), buffer = buffer.unpack(">i")
        fSize: int = members["fSize"]
        objects: list[ROOTSerializable] = []
        for _ in range(fSize):
            item, buffer = read_streamed_item(buffer)
            objects.append(item)
        members["objects"] = tuple(objects)
        return members, buffer


DICTIONARY["TObjArray"] = TObjArray
