"""Opening, creating and closing ROOT files.

A ROOT file is a suite of consecutive data records (TKeys) preceded by a
fixed header. open() decodes the header and then reads, in this order, the
directory record, the StreamerInfo record and the KeysList record.
create() writes the header and the directory record of an empty file, and
close() writes the StreamerInfo, KeysList and FreeSegments records before
rewriting the header.

Binary Spec: https://root.cern/doc/master/header.html
"""

import io
import logging
import os
from typing import BinaryIO, Callable, Optional, Union

from rootfileio.blocks import FreeBlock, FreeBlocks
from rootfileio.bootstrap.strings import tstring_sizeof
from rootfileio.bootstrap.TDirectory import TDirectory
from rootfileio.bootstrap.TFile import FileHeader, VersionInfo
from rootfileio.bootstrap.TFree import TFree
from rootfileio.bootstrap.TKey import TKey
from rootfileio.bootstrap.TList import TList
from rootfileio.bootstrap.TStreamerInfo import TStreamerInfo
from rootfileio.bootstrap.TUUID import TUUID
from rootfileio.buffer import RBuffer, ReadBuffer, WBuffer
from rootfileio.constants import (
    HEADER_SIZE_LARGE,
    ROOT_VERSION,
    kBEGIN,
    kStartBigFile,
)
from rootfileio.directory import Directory
from rootfileio.dispatch import ObjectKind
from rootfileio.errors import (
    BootstrapError,
    FileClosedError,
    FormatError,
    RangeError,
    ShortReadError,
)
from rootfileio.registry import StreamerRegistry, streamers
from rootfileio.serializable import ROOTSerializable
from rootfileio.storage import Storage, StreamStorage

log = logging.getLogger(__name__)

Source = Union[str, "os.PathLike[str]", BinaryIO]


class ROOTFile:
    """A ROOT file, opened with open() or create().

    The file is a context manager, leaving the block closes it.
    """

    path: str
    """Name of the file, used in error messages and as the name of new files"""
    header: FileHeader
    dir: Directory
    """The root directory"""
    blocks: FreeBlocks
    """Free space of a file opened for writing"""
    si_key: Optional[TKey]
    """The key of the StreamerInfo record"""

    def __init__(
        self,
        storage: Storage,
        path: str,
        *,
        writable: bool = False,
        registry: StreamerRegistry = streamers,
    ):
        self._storage: Optional[Storage] = storage
        self.path = path
        self.writable = writable
        self.registry = registry
        self.header = FileHeader(fVersion=0, fBEGIN=0)
        self.dir = Directory(self)
        self.blocks = FreeBlocks()
        self.si_key = None
        self._sinfos: tuple[TStreamerInfo, ...] = ()

    def __repr__(self) -> str:
        state = "closed" if self.closed else ("writable" if self.writable else "open")
        return f"ROOTFile({self.path!r}, {state})"

    def __enter__(self) -> "ROOTFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._storage is None

    def _check_open(self) -> None:
        if self._storage is None:
            msg = f"I/O operation on closed file {self.path!r}"
            raise FileClosedError(msg)

    @property
    def storage(self) -> Storage:
        self._check_open()
        assert self._storage is not None
        return self._storage

    # Byte access

    def read_at(self, size: int, offset: int) -> bytes:
        return self.storage.read_at(size, offset)

    def write_at(self, data: bytes, offset: int) -> int:
        if not self.writable:
            msg = f"File {self.path!r} is not open for writing"
            raise io.UnsupportedOperation(msg)
        return self.storage.write_at(data, offset)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self.storage.seek(offset, whence)

    def tell(self) -> int:
        return self.storage.seek(0, io.SEEK_CUR)

    def read(self, size: int) -> bytes:
        """Read size bytes from the current position and advance it."""
        pos = self.tell()
        data = self.read_at(size, pos)
        self.seek(pos + len(data))
        return data

    def fetch_data(self, seek: int, size: int) -> ReadBuffer:
        """Read exactly size bytes at seek, the DataFetcher of this file."""
        data = self.read_at(size, seek)
        if len(data) != size:
            raise ShortReadError(size, len(data))
        return ReadBuffer(memoryview(data), seek, 0)

    # Contents

    def keys(self) -> list[TKey]:
        self._check_open()
        return list(self.dir.keys)

    def name(self) -> str:
        return self.dir.name()

    def title(self) -> str:
        return self.dir.title()

    def class_name(self) -> str:
        return "TFile"

    def streamer_info(self) -> tuple[TStreamerInfo, ...]:
        """The TStreamerInfo records found in this file."""
        return self._sinfos

    def get(self, namecycle: str) -> ROOTSerializable:
        """Get the object stored under namecycle.

        namecycle has the format name;cycle, where a missing cycle (or 9999)
        means the highest cycle, e.g. "hist" or "hist;1".
        """
        self._check_open()
        return self.dir.get(namecycle)

    def version(self) -> int:
        """File format version, without the large file flag (e.g. 62206)"""
        return self.header.version()

    def version_info(self) -> VersionInfo:
        return self.header.version_info()

    def free_segments(self) -> FreeBlocks:
        """Decode the FreeSegments record of the file."""
        header = self.header
        if header.fSeekFree == 0 or header.fNbytesFree == 0:
            return FreeBlocks()
        buffer = self.fetch_data(header.fSeekFree, header.fNbytesFree)
        key, buffer = TKey.read(buffer)
        if key.fSeekKey != header.fSeekFree:
            msg = f"ROOTFile.free_segments: fSeekKey mismatch {key.fSeekKey} != {header.fSeekFree}"
            raise FormatError(msg)
        blocks: list[FreeBlock] = []
        for _ in range(header.nfree):
            free, buffer = TFree.read(buffer)
            blocks.append(free.block())
        return FreeBlocks(blocks)

    # Bootstrap (read)

    def _read_header(self) -> None:
        data = self.read_at(HEADER_SIZE_LARGE, 0)
        self.header = FileHeader.decode(RBuffer.from_bytes(data))
        log.debug("%s: ROOT file version %d", self.path, self.header.fVersion)
        self._stage("directory infos", self.dir.read_dir_info)
        self._stage("streamer infos", self._read_streamer_info)
        self._stage("file keys", self.dir.read_keys)

    def _stage(self, stage: str, read: Callable[[], None]) -> None:
        log.debug("%s: reading %s", self.path, stage)
        try:
            read()
        except Exception as err:
            raise BootstrapError(stage, self.path) from err

    def _read_streamer_info(self) -> None:
        header = self.header
        if not 0 < header.fSeekInfo < header.fEND:
            msg = f"Invalid pointer to StreamerInfo (pos={header.fSeekInfo} end={header.fEND})"
            raise RangeError(msg)
        buffer = self.fetch_data(header.fSeekInfo, header.fNbytesInfo)
        key, _ = TKey.read(buffer)
        if key.fSeekKey != header.fSeekInfo:
            msg = f"StreamerInfo fSeekKey mismatch {key.fSeekKey} != {header.fSeekInfo}"
            raise FormatError(msg)
        key.attach(self)

        def fetch_cached(seek: int, size: int) -> ReadBuffer:
            seek -= header.fSeekInfo
            return buffer[seek : seek + size]

        value = key.value(fetch_cached)
        if value.kind is not ObjectKind.LIST:
            msg = f"StreamerInfo record holds a {key.class_name()}, not a list"
            raise FormatError(msg)
        sinfos: list[TStreamerInfo] = []
        for item in value.obj.tagged():
            if item.kind is not ObjectKind.STREAMER_INFO:
                log.debug("skipping %s in StreamerInfo list", type(item.obj).__name__)
                continue
            sinfos.append(item.obj)
            self.registry.add(item.obj)
        self.si_key = key
        self._sinfos = tuple(sinfos)
        log.debug("%s: %d streamer infos", self.path, len(sinfos))

    # Bootstrap (create)

    def _write_bootstrap(self, title: str) -> None:
        header = self.header = FileHeader(
            fVersion=ROOT_VERSION, fBEGIN=kBEGIN, fEND=kBEGIN
        )
        uuid = TUUID.new()
        buffer = WBuffer()
        uuid.write(buffer)
        header.fUUID = buffer.getvalue()
        self.blocks = FreeBlocks([FreeBlock(kBEGIN, kStartBigFile)])

        bname, btitle = self.path.encode(), title.encode()
        namelen = tstring_sizeof(bname) + tstring_sizeof(btitle)
        nbytes = namelen + self.dir.record_size(header.fVersion)
        key = self.new_key(
            classname=self.class_name().encode(),
            name=bname,
            title=btitle,
            objlen=nbytes,
            seekpdir=0,
        )
        header.fNbytesName = key.header.fKeylen + namelen
        self.dir.init(
            key,
            TDirectory.new(
                seekdir=key.fSeekKey,
                nbytesname=header.fNbytesName,
                uuid=uuid,
                large=not key.header.is_short(),
            ),
        )
        header.fSeekFree = 0
        header.fNbytesFree = 0
        self._write_header(folded=False)
        self.dir.write_header_record()

    def _write_header(self, *, folded: bool = True) -> None:
        """Write the header at offset 0.

        A new file is written with the widths of its version before the fold.
        The rewrite at close uses the folded version, as the trailer may lie
        past kStartBigFile.
        """
        header = self.header
        header.fEND = self.blocks.last.first
        header.nfree = len(self.blocks)
        version = header.fold()
        if folded:
            version = header.fVersion
        header.fCompress = 1
        buffer = WBuffer()
        header.encode(buffer, version=version)
        buffer.check()
        self.write_at(buffer.getvalue(), 0)

    # Write side

    def _check_writable(self) -> None:
        self._check_open()
        if not self.writable:
            msg = f"File {self.path!r} is not open for writing"
            raise io.UnsupportedOperation(msg)

    def new_key(
        self,
        *,
        classname: bytes,
        name: bytes,
        title: bytes,
        objlen: int,
        seekpdir: int,
        cycle: int = 1,
    ) -> TKey:
        """Reserve space for a key and objlen bytes of payload."""
        large = self.blocks.last.first > kStartBigFile
        nbytes = TKey.sizeof(classname, name, title, large) + objlen
        seekkey = self.blocks.allocate(nbytes)
        key = TKey.new(
            classname=classname,
            name=name,
            title=title,
            objlen=objlen,
            seekkey=seekkey,
            seekpdir=seekpdir,
            cycle=cycle,
            large=large,
        )
        key.attach(self)
        return key

    def put(self, name: str, obj: ROOTSerializable, title: str = "") -> TKey:
        """Store obj under name, with the next free cycle number."""
        self._check_writable()
        payload = WBuffer()
        obj.write(payload)
        payload.check()
        bname = name.encode()
        key = self.new_key(
            classname=type(obj).__name__.encode(),
            name=bname,
            title=title.encode(),
            objlen=len(payload),
            seekpdir=self.dir.seekdir(),
            cycle=self.dir.next_cycle(bname),
        )
        self.write_at(key.record(payload.getvalue()), key.fSeekKey)
        self.dir.add_key(key)
        log.debug(
            "%s: wrote %s;%d at %d (%d bytes)",
            self.path,
            name,
            key.cycle(),
            key.fSeekKey,
            key.header.fNbytes,
        )
        return key

    def delete(self, namecycle: str) -> None:
        """Remove a key and give its bytes back to the free space."""
        self._check_writable()
        key = self.dir.find(namecycle)
        blk = self.blocks.release(key.fSeekKey, key.fSeekKey + key.header.fNbytes - 1)
        # a gap is marked by its negated size
        gap = WBuffer()
        gap.write_i32(-min(blk.size(), kStartBigFile))
        self.write_at(gap.getvalue(), blk.first)
        self.dir.remove_key(key)
        key.detach()
        log.debug("%s: deleted %s", self.path, namecycle)

    def _write_streamer_info(self) -> None:
        payload = WBuffer()
        TList.new(list(self._sinfos)).write(payload)
        payload.check()
        key = self.new_key(
            classname=b"TList",
            name=b"StreamerInfo",
            title=b"Doubly linked list",
            objlen=len(payload),
            seekpdir=self.dir.seekdir(),
        )
        self.write_at(key.record(payload.getvalue()), key.fSeekKey)
        self.header.fSeekInfo = key.fSeekKey
        self.header.fNbytesInfo = key.header.fNbytes
        self.si_key = key

    def _free_segments_size(self) -> int:
        return sum(TFree.from_block(blk).sizeof() for blk in self.blocks)

    def _write_free_segments(self) -> None:
        def free_key(objlen: int) -> TKey:
            return self.new_key(
                classname=self.class_name().encode(),
                name=self.path.encode(),
                title=self.title().encode(),
                objlen=objlen,
                seekpdir=self.dir.seekdir(),
            )

        nbytes = self._free_segments_size()
        key = free_key(nbytes)
        # reserving the key may have changed the free list it describes
        while self._free_segments_size() > nbytes:
            self.blocks.release(key.fSeekKey, key.fSeekKey + key.header.fNbytes - 1)
            nbytes = self._free_segments_size()
            key = free_key(nbytes)
        payload = WBuffer()
        for blk in self.blocks:
            TFree.from_block(blk).write(payload)
        payload.write_bytes(bytes(nbytes - len(payload)))
        payload.check()
        self.write_at(key.record(payload.getvalue()), key.fSeekKey)
        self.header.fSeekFree = key.fSeekKey
        self.header.fNbytesFree = key.header.fNbytes

    def _write_trailer(self) -> None:
        log.debug("%s: writing trailer", self.path)
        self._write_streamer_info()
        self.dir.write_keys_list()
        self.dir.write_record()
        self._write_free_segments()
        self._write_header()

    # Teardown

    def close(self) -> None:
        """Close the file, writing the trailer if it was created for writing.

        Keys of the file can no longer read their object afterwards.
        Closing a closed file does nothing.
        """
        if self.closed:
            return
        try:
            if self.writable:
                self._write_trailer()
        finally:
            self._teardown()

    def _teardown(self) -> None:
        self.dir.clear()
        if self.si_key is not None:
            self.si_key.detach()
        storage, self._storage = self._storage, None
        if storage is not None:
            storage.close()


def _storage_for(source: Source, mode: str) -> tuple[Storage, str]:
    if isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        return StreamStorage(io.open(path, mode)), path
    return StreamStorage(source, owned=False), str(getattr(source, "name", ""))


def open(source: Source, *, registry: StreamerRegistry = streamers) -> ROOTFile:
    """Open a ROOT file for reading.

    source is a path or a seekable binary stream. A stream is not closed
    when the file is closed.
    """
    storage, path = _storage_for(source, "rb")
    file = ROOTFile(storage, path, registry=registry)
    try:
        file._read_header()
    except Exception:
        file._teardown()
        raise
    log.debug("%s: opened, %d keys", path, len(file.dir.keys))
    return file


def create(
    target: Source, *, title: str = "", registry: StreamerRegistry = streamers
) -> ROOTFile:
    """Create a new, empty ROOT file for writing.

    target is a path (an existing file is truncated) or a readable and
    writable binary stream.
    """
    storage, path = _storage_for(target, "w+b")
    file = ROOTFile(storage, path, writable=True, registry=registry)
    try:
        file._write_bootstrap(title)
    except Exception:
        file._teardown()
        raise
    log.debug("%s: created", path)
    return file
