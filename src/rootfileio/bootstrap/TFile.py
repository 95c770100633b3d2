import logging
from dataclasses import dataclass
from typing import Optional

from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TDirectory import TDirectory
from rootfileio.bootstrap.TUUID import TUUID
from rootfileio.buffer import RBuffer, ReadBuffer, WBuffer
from rootfileio.constants import (
    MAGIC,
    kLargeFileFlag,
    kStartBigFile,
    kUUIDSize,
)
from rootfileio.errors import FormatError, ShortReadError
from rootfileio.serializable import ROOTSerializable, serializable

log = logging.getLogger(__name__)


@dataclass(order=True)
class VersionInfo:
    """Version information for the ROOT file."""

    major: int
    """Major version number of the ROOT file."""
    minor: int
    """Minor version number of the ROOT file."""
    cycle: int
    """Cycle number of the ROOT file."""
    large: bool = False
    """True if the file is larger than 32 bit file limit (2GB)."""

    @classmethod
    def of(cls, version: int) -> "VersionInfo":
        return cls(
            major=version // 10_000 % 100,
            minor=version // 100 % 100,
            cycle=version % 100,
            large=version >= kLargeFileFlag,
        )


_FIELDS = (
    "fEND",
    "fSeekFree",
    "fNbytesFree",
    "nfree",
    "fNbytesName",
    "fUnits",
    "fCompress",
    "fSeekInfo",
    "fNbytesInfo",
)
# If END, SeekFree, or SeekInfo are located past the 32 bit file limit
# these fields are 8 instead of 4 bytes and 1000000 is added to the version
_SMALL_FMT = (">i", ">i", ">i", ">i", ">i", ">B", ">i", ">i", ">i")
_LARGE_FMT = (">q", ">q", ">i", ">i", ">i", ">B", ">i", ">q", ">i")


@dataclass
class FileHeader:
    """
    The header found at the start of every ROOT file.

    Header information from https://root.cern/doc/master/header.html

    After decode() fVersion never carries the large file flag, that
    information is in fUnits. fold() applies the flag before writing.
    """

    fVersion: int
    """File format version"""
    fBEGIN: int
    """Byte offset of first data record (100)"""
    fEND: int = 0
    """Pointer to first free word at the EOF"""
    fSeekFree: int = 0
    """Byte offset of FreeSegments record"""
    fNbytesFree: int = 0
    """Number of bytes in FreeSegments record"""
    nfree: int = 0
    """Number of free data records"""
    fNbytesName: int = 0
    """Number of bytes in TKey+TNamed for ROOTFile at creation"""
    fUnits: int = 4
    """Number of bytes for file pointers (4 or 8)"""
    fCompress: int = 0
    """Zip compression level (i.e. 0-9)"""
    fSeekInfo: int = 0
    """Byte offset of StreamerInfo record"""
    fNbytesInfo: int = 0
    """Number of bytes in StreamerInfo record"""
    fUUID: bytes = bytes(kUUIDSize)
    """Unique identifier for the file (a streamed TUUID)"""

    @classmethod
    def decode(cls, buffer: RBuffer) -> "FileHeader":
        magic = buffer.read_bytes(len(MAGIC))
        if buffer.err is None and magic != MAGIC:
            msg = f"FileHeader.decode: magic is not 'root': {magic!r}"
            raise FormatError(msg)
        fVersion = buffer.read_i32()
        fBEGIN = buffer.read_i32()
        layout = _LARGE_FMT if fVersion >= kLargeFileFlag else _SMALL_FMT
        values = {name: buffer.unpack(fmt)[0] for name, fmt in zip(_FIELDS, layout)}
        fUUID = buffer.read_bytes(kUUIDSize)
        try:
            buffer.check()
        except ShortReadError as err:
            msg = "FileHeader.decode: truncated file header"
            raise FormatError(msg) from err
        return cls(
            fVersion=fVersion % kLargeFileFlag,
            fBEGIN=fBEGIN,
            fUUID=fUUID,
            **values,
        )

    def encode(self, buffer: WBuffer, version: Optional[int] = None) -> None:
        """Write the header, with the field widths selected by version (default fVersion)."""
        if version is None:
            version = self.fVersion
        buffer.write_bytes(MAGIC)
        buffer.write_i32(version)
        buffer.write_i32(self.fBEGIN)
        layout = _LARGE_FMT if version >= kLargeFileFlag else _SMALL_FMT
        for name, fmt in zip(_FIELDS, layout):
            buffer.pack(fmt, getattr(self, name))
        if len(self.fUUID) != kUUIDSize:
            msg = f"FileHeader.encode: UUID must be {kUUIDSize} bytes, got {len(self.fUUID)}"
            raise ValueError(msg)
        buffer.write_bytes(self.fUUID)
        log.debug(
            "header: version=%d begin=%d end=%d seekfree=%d nbytesfree=%d nfree=%d "
            "nbytesname=%d units=%d compress=%d seekinfo=%d nbytesinfo=%d",
            version,
            self.fBEGIN,
            self.fEND,
            self.fSeekFree,
            self.fNbytesFree,
            self.nfree,
            self.fNbytesName,
            self.fUnits,
            self.fCompress,
            self.fSeekInfo,
            self.fNbytesInfo,
        )

    def fold(self) -> int:
        """Apply the large file convention for the current fEND.

        Past kStartBigFile the pointers need 8 bytes: fUnits becomes 8 and
        kLargeFileFlag is added to fVersion (once). Returns fVersion as it
        was before folding, which is what encode() writes.
        """
        version = self.fVersion
        self.fUnits = 4
        if self.fEND > kStartBigFile or version >= kLargeFileFlag:
            self.fUnits = 8
            if version < kLargeFileFlag:
                self.fVersion = version + kLargeFileFlag
        return version

    def version(self) -> int:
        return self.fVersion % kLargeFileFlag

    def version_info(self) -> VersionInfo:
        return VersionInfo.of(self.version())

    def is_large(self) -> bool:
        return self.fUnits == 8

    def uuid(self) -> TUUID:
        uuid, _ = TUUID.read(ReadBuffer(memoryview(self.fUUID), 0, 0))
        return uuid


@serializable
class TFile(ROOTSerializable):
    """The TFile object is a TDirectory with an extra name and title field (the first or "root" TDirectory):
        Binary Spec (the DATA section): https://root.cern.ch/doc/master/tfile.html

    TDirectory otherwise has its name and title in its owning TKey object (see TDirectory class).
    """

    fName: TString
    """The name of the ROOT file."""
    fTitle: TString
    """The title of the ROOT file."""
    rootdir: TDirectory
    """The root TDirectory of the ROOT file (formatted like a normal TDirectory)."""
