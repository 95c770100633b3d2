from collections.abc import Mapping
from typing import Annotated, Optional

from rootfileio.bootstrap.TDatime import datetime_to_TDatime
from rootfileio.bootstrap.TKey import TKey
from rootfileio.bootstrap.TUUID import TUUID
from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.constants import TDIRECTORY_VERSION, kUUIDSize
from rootfileio.dispatch import DICTIONARY
from rootfileio.serializable import Members, ROOTSerializable, serializable
from rootfileio.structutil import Fmt

"""
TODO: TDirectory for ROOT 3.02.06

Format of a TDirectory record in release 3.02.06. It is never compressed.
       0->0  Modified  = True if directory has been modified                           TDirectory::fModified
       1->1  Writable = True if directory is writable                                  TDirectory::fWriteable
       2->5  DatimeC   = Date and time when directory was created                      TDirectory::fDatimeC
                       | (year-1995)<<26|month<<22|day<<17|hour<<12|minute<<6|second
       6->9  DatimeM   = Date and time when directory was last modified                TDirectory::fDatimeM
                       | (year-1995)<<26|month<<22|day<<17|hour<<12|minute<<6|second
      10->13 NbytesKeys= Number of bytes in the associated KeysList record             TDirectory::fNbyteskeys
      14->17 NbytesName= Number of bytes in TKey+TNamed at creation                    TDirectory::fNbytesName
      18->21 SeekDir   = Byte offset of directory record in file                       TDirectory::fSeekDir
      22->25 SeekParent= Byte offset of parent directory record in file                TDirectory::fSeekParent
      26->29 SeekKeys  = Byte offset of associated KeysList record in file             TDirectory::fSeekKeys
"""

_SEEK_PADDING = 12
"""Extra space after a small record so the seeks can become 64 bit in place"""


@serializable
class TDirectory_header_v622(ROOTSerializable):
    """Format of a TDirectory record in release 6.22.06. It is never compressed.
    Header information from https://root.cern/doc/master/tdirectory.html
    """

    fVersion: Annotated[int, Fmt(">h")]
    """TDirectory class version identifier"""
    fDatimeC: Annotated[int, Fmt(">I")]
    """Date and time when directory was created"""
    fDatimeM: Annotated[int, Fmt(">I")]
    """Date and time when directory was last modified"""
    fNbytesKeys: Annotated[int, Fmt(">i")]
    """Number of bytes in the associated KeysList record"""
    fNbytesName: Annotated[int, Fmt(">i")]
    """Number of bytes in TKey+TNamed at creation"""

    def version(self) -> int:
        """Version of the TDirectory class"""
        return self.fVersion % 1000

    def is_large(self) -> bool:
        """True if the file is larger than 2GB"""
        return self.fVersion > 1000


@serializable
class TDirectory(ROOTSerializable):
    """TDirectory object.
    Binary Spec (the DATA section): https://root.cern.ch/doc/master/tdirectory.html
    """

    header: TDirectory_header_v622
    """TDirectory header information"""
    fSeekDir: int
    """Byte offset of directory record in file"""
    fSeekParent: int
    """Byte offset of parent directory record in file"""
    fSeekKeys: int
    """Byte offset of associated KeysList record in file"""
    fUUID: Optional[TUUID]
    """Universally Unique Identifier"""

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        header, buffer = TDirectory_header_v622.read(buffer)
        if header.is_large():
            (fSeekDir, fSeekParent, fSeekKeys), buffer = buffer.unpack(">qqq")
        else:
            (fSeekDir, fSeekParent, fSeekKeys), buffer = buffer.unpack(">iii")
        if header.version() > 1:
            fUUID, buffer = TUUID.read(buffer)
        else:
            fUUID = None
        if not header.is_large() and len(buffer) >= _SEEK_PADDING:
            buffer = buffer[_SEEK_PADDING:]
        members["header"] = header
        members["fSeekDir"] = fSeekDir
        members["fSeekParent"] = fSeekParent
        members["fSeekKeys"] = fSeekKeys
        members["fUUID"] = fUUID
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        self.header.write(buffer)
        fmt = ">qqq" if self.header.is_large() else ">iii"
        buffer.pack(fmt, self.fSeekDir, self.fSeekParent, self.fSeekKeys)
        if self.header.version() > 1:
            uuid = self.fUUID if self.fUUID is not None else TUUID.new()
            uuid.write(buffer)
        if not self.header.is_large():
            buffer.write_bytes(bytes(_SEEK_PADDING))

    @staticmethod
    def record_size(version: int) -> int:
        """Number of bytes of a TDirectory record written by a file of the given format version"""
        # fVersion, fDatimeC, fDatimeM, fNbytesKeys, fNbytesName
        nbytes = 2 + 4 + 4 + 4 + 4
        # fSeekDir, fSeekParent, fSeekKeys
        nbytes += 3 * 4
        nbytes += kUUIDSize
        if version >= 40000:
            # room for 64 bit seeks
            nbytes += _SEEK_PADDING
        return nbytes

    @classmethod
    def new(
        cls,
        *,
        seekdir: int,
        nbytesname: int,
        uuid: TUUID,
        seekparent: int = 0,
        large: bool = False,
    ) -> "TDirectory":
        now = datetime_to_TDatime()
        header = TDirectory_header_v622(
            fVersion=TDIRECTORY_VERSION + (1000 if large else 0),
            fDatimeC=now,
            fDatimeM=now,
            fNbytesKeys=0,
            fNbytesName=nbytesname,
        )
        return cls(
            header=header,
            fSeekDir=seekdir,
            fSeekParent=seekparent,
            fSeekKeys=0,
            fUUID=uuid,
        )


# TODO: are these different?
DICTIONARY["TDirectory"] = TDirectory
DICTIONARY["TDirectoryFile"] = TDirectory


@serializable
class TKeyList(ROOTSerializable, Mapping[str, TKey]):
    """The TKeyList for a TDirectory contains all the (visible) TKeys
    Binary Spec: https://root.cern.ch/doc/master/keyslist.html
    """

    fKeys: list[TKey]
    """List of TKey objects"""

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        (nKeys,), buffer = buffer.unpack(">i")
        keys: list[TKey] = []
        while len(keys) < nKeys:
            key, buffer = TKey.read(buffer)
            keys.append(key)
        members["fKeys"] = keys
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        buffer.write_i32(len(self.fKeys))
        for key in self.fKeys:
            key.write(buffer)

    def __len__(self):
        return len(self.fKeys)

    def __iter__(self):
        return (key.fName.fString.decode("ascii") for key in self.fKeys)

    def __getitem__(self, key: str):
        bkey = key.encode("ascii")
        matches = [k for k in self.fKeys if k.fName.fString == bkey]
        if not matches:
            raise KeyError(key)
        return max(matches, key=lambda k: k.header.fCycle)
