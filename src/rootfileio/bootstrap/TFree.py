from rootfileio.blocks import FreeBlock
from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.constants import kStartBigFile
from rootfileio.serializable import Members, ROOTSerializable, serializable


@serializable
class TFree(ROOTSerializable):
    """One entry of the FreeSegments record.
    Binary Spec: https://root.cern/doc/master/freesegments.html
    """

    fVersion: int
    """TFree class version, above 1000 the bounds are 64 bit"""
    fFirst: int
    """First free byte"""
    fLast: int
    """Last free byte"""

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        (fVersion,), buffer = buffer.unpack(">h")
        if fVersion > 1000:
            (fFirst, fLast), buffer = buffer.unpack(">qq")
        else:
            (fFirst, fLast), buffer = buffer.unpack(">ii")
        members["fVersion"] = fVersion
        members["fFirst"] = fFirst
        members["fLast"] = fLast
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        buffer.write_i16(self.fVersion)
        fmt = ">qq" if self.fVersion > 1000 else ">ii"
        buffer.pack(fmt, self.fFirst, self.fLast)

    def sizeof(self) -> int:
        return 18 if self.fVersion > 1000 else 10

    @classmethod
    def from_block(cls, blk: FreeBlock) -> "TFree":
        version = 1001 if blk.last > kStartBigFile else 1
        return cls(fVersion=version, fFirst=blk.first, fLast=blk.last)

    def block(self) -> FreeBlock:
        return FreeBlock(self.fFirst, self.fLast)
