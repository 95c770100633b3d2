import dataclasses
import weakref
from typing import (
    TYPE_CHECKING,
    Annotated,
    Optional,
    TypeVar,
    Union,
    overload,
)

from rootfileio.bootstrap.compression import decompress
from rootfileio.bootstrap.strings import TString, tstring_sizeof
from rootfileio.bootstrap.TDatime import TDatime, datetime_to_TDatime
from rootfileio.buffer import DataFetcher, ReadBuffer, WBuffer
from rootfileio.constants import TKEY_VERSION
from rootfileio.dispatch import DICTIONARY, Decoded, kind_of, normalize
from rootfileio.errors import FileClosedError, FormatError
from rootfileio.serializable import Members, ROOTSerializable, serializable
from rootfileio.structutil import Fmt

if TYPE_CHECKING:
    from rootfileio.file import ROOTFile


@serializable
class TKey_header(ROOTSerializable):
    """TKey header information"""

    fNbytes: Annotated[int, Fmt(">i")]
    """Number of bytes in compressed record (Tkey+data)"""
    fVersion: Annotated[int, Fmt(">h")]
    """TKey class version identifier"""
    fObjlen: Annotated[int, Fmt(">i")]
    """Number of bytes of uncompressed data"""
    fDatime: TDatime
    """Date and time when record was written to file"""
    fKeylen: Annotated[int, Fmt(">h")]
    """Number of bytes in key structure (TKey)"""
    fCycle: Annotated[int, Fmt(">h")]
    """Cycle of key"""

    def is_short(self) -> bool:
        """Return if the key is short (i.e. the seeks are 32 bit)"""
        return self.fVersion < 1000

    def is_compressed(self) -> bool:
        """Return if the key is compressed"""
        return self.fNbytes != self.fObjlen + self.fKeylen


ObjType = TypeVar("ObjType", bound=ROOTSerializable)


@serializable
class TKey(ROOTSerializable):
    """TKey object.
    See https://root.cern/doc/master/classTKey.html for more information.

    A key read from (or written to) an open file keeps a weak reference to it,
    see attach(). Once the file is closed the reference is cleared and
    anything that needs the file raises FileClosedError.
    """

    header: TKey_header
    """TKey header information"""
    fSeekKey: int
    """Byte offset of record itself (consistency check)"""
    fSeekPdir: int
    """Byte offset of parent directory record"""
    fClassName: TString
    """Object Class Name"""
    fName: TString
    """Name of the object"""
    fTitle: TString
    """Title of the object"""
    _file: Optional["weakref.ref[ROOTFile]"] = dataclasses.field(
        default=None, repr=False
    )

    @classmethod
    def update_members(
        cls, members: Members, buffer: ReadBuffer
    ) -> tuple[Members, ReadBuffer]:
        header, buffer = TKey_header.read(buffer)
        if header.fVersion < 1000:
            (fSeekKey, fSeekPdir), buffer = buffer.unpack(">ii")
        else:
            (fSeekKey, fSeekPdir), buffer = buffer.unpack(">qq")
        fClassName, buffer = TString.read(buffer)
        fName, buffer = TString.read(buffer)
        fTitle, buffer = TString.read(buffer)
        if header.fVersion % 1000 not in (2, 4):
            msg = f"TKey.read_members: unexpected version {header.fVersion}"
            raise FormatError(msg)
        members["header"] = header
        members["fSeekKey"] = fSeekKey
        members["fSeekPdir"] = fSeekPdir
        members["fClassName"] = fClassName
        members["fName"] = fName
        members["fTitle"] = fTitle
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        self.header.write(buffer)
        fmt = ">ii" if self.header.is_short() else ">qq"
        buffer.pack(fmt, self.fSeekKey, self.fSeekPdir)
        self.fClassName.write(buffer)
        self.fName.write(buffer)
        self.fTitle.write(buffer)

    @staticmethod
    def sizeof(classname: bytes, name: bytes, title: bytes, large: bool = False) -> int:
        """Number of bytes of the key structure (fKeylen)"""
        # fNbytes, fVersion, fObjlen, fDatime, fKeylen, fCycle
        nbytes = 4 + 2 + 4 + 4 + 2 + 2
        nbytes += 16 if large else 8
        nbytes += tstring_sizeof(classname) + tstring_sizeof(name)
        return nbytes + tstring_sizeof(title)

    @classmethod
    def new(
        cls,
        *,
        classname: bytes,
        name: bytes,
        title: bytes,
        objlen: int,
        seekkey: int,
        seekpdir: int,
        cycle: int = 1,
        large: bool = False,
    ) -> "TKey":
        """A key for an uncompressed record of objlen bytes stored at seekkey."""
        keylen = cls.sizeof(classname, name, title, large)
        header = TKey_header(
            fNbytes=keylen + objlen,
            fVersion=TKEY_VERSION + (1000 if large else 0),
            fObjlen=objlen,
            fDatime=datetime_to_TDatime(),
            fKeylen=keylen,
            fCycle=cycle,
        )
        return cls(
            header=header,
            fSeekKey=seekkey,
            fSeekPdir=seekpdir,
            fClassName=TString(classname),
            fName=TString(name),
            fTitle=TString(title),
        )

    def record(self, payload: bytes) -> bytes:
        """The on-disk record: this key followed by its (uncompressed) payload."""
        if len(payload) != self.header.fObjlen:
            msg = f"TKey.record: payload of {len(payload)} bytes for fObjlen {self.header.fObjlen}"
            raise ValueError(msg)
        buffer = WBuffer()
        self.write(buffer)
        if len(buffer) != self.header.fKeylen:
            msg = f"TKey.record: wrote {len(buffer)} bytes for fKeylen {self.header.fKeylen}"
            raise FormatError(msg)
        buffer.write_bytes(payload)
        buffer.check()
        return buffer.getvalue()

    def attach(self, file: "ROOTFile") -> None:
        self._file = weakref.ref(file)

    def detach(self) -> None:
        self._file = None

    @property
    def file(self) -> "ROOTFile":
        """The file this key belongs to."""
        file = self._file() if self._file is not None else None
        if file is None or file.closed:
            msg = f"TKey {self.fName.fString!r}: the file of this key has been closed"
            raise FileClosedError(msg)
        return file

    def name(self) -> str:
        return self.fName.fString.decode()

    def cycle(self) -> int:
        return self.header.fCycle

    def class_name(self) -> str:
        return self.fClassName.fString.decode()

    def is_compressed(self) -> bool:
        return self.header.is_compressed()

    @overload
    def read_object(self, fetch_data: Optional[DataFetcher] = None) -> ROOTSerializable: ...

    @overload
    def read_object(
        self, fetch_data: Optional[DataFetcher], objtype: type[ObjType]
    ) -> ObjType: ...

    def read_object(
        self,
        fetch_data: Optional[DataFetcher] = None,
        objtype: Optional[type[ObjType]] = None,
    ) -> Union[ObjType, ROOTSerializable]:
        """Read the object stored in this key.

        Without a fetch_data the bytes are read from the file the key is
        attached to.
        """
        if fetch_data is None:
            fetch_data = self.file.fetch_data
        buffer = fetch_data(self.fSeekKey, self.header.fNbytes)
        buffer = buffer[self.header.fKeylen :]
        # the payload on disk is shorter than fObjlen when compressed
        if self.is_compressed():
            buffer = ReadBuffer(
                decompress(buffer, self.header.fObjlen),
                abspos=None,
                relpos=self.header.fKeylen,
            )
        if objtype is not None:
            typename = objtype.__name__
            obj, buffer = objtype.read(buffer)
        else:
            typename = normalize(self.fClassName.fString)
            dyntype = DICTIONARY.get(typename)
            if dyntype is None:
                msg = f"TKey.read_object: unknown type {typename}"
                raise NotImplementedError(msg)
            obj, buffer = dyntype.read(buffer)
        if buffer:
            msg = f"TKey.read_object: {len(buffer)} bytes left after reading {typename}"
            msg += f" from key {self.fName.fString!r}"
            raise FormatError(msg)
        # mypy doesn't understand that we have obj: ObjType | ROOTSerializable here
        return obj  # type: ignore[no-any-return]

    def value(self, fetch_data: Optional[DataFetcher] = None) -> Decoded:
        """The stored object, tagged with its kind."""
        obj = self.read_object(fetch_data)
        return Decoded(kind_of(normalize(self.fClassName.fString)), obj)
