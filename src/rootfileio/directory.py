"""The root directory of a ROOT file.

The directory owns the key list of the file. On read it decodes its record
(found right after the TKey+TNamed written at fBEGIN) and the KeysList record
it points to. On write it keeps both up to date so close() can persist them.
"""

import logging
import weakref
from typing import TYPE_CHECKING, Optional

from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TDatime import datetime_to_TDatime
from rootfileio.bootstrap.TDirectory import TDirectory, TKeyList
from rootfileio.bootstrap.TFile import TFile
from rootfileio.bootstrap.TKey import TKey
from rootfileio.buffer import WBuffer
from rootfileio.constants import kLatestCycle, kStartBigFile
from rootfileio.errors import FileClosedError, FormatError, KeyNotFoundError
from rootfileio.serializable import ROOTSerializable

if TYPE_CHECKING:
    from rootfileio.file import ROOTFile

log = logging.getLogger(__name__)


def parse_namecycle(namecycle: str) -> tuple[str, Optional[int]]:
    """Split "name;cycle" into its parts.

    A missing cycle, an empty one or kLatestCycle all mean the highest cycle
    and give None.
    """
    name, _, cycle = namecycle.partition(";")
    if not cycle:
        return name, None
    try:
        number = int(cycle)
    except ValueError:
        msg = f"Invalid cycle in {namecycle!r}"
        raise ValueError(msg) from None
    if number == kLatestCycle:
        return name, None
    return name, number


class Directory:
    """The directory collaborator of a ROOTFile."""

    keys: list[TKey]
    """The keys of this directory, in the order they were written"""
    key: Optional[TKey]
    """The key written in front of the directory record"""
    record: Optional[TDirectory]

    def __init__(self, file: "ROOTFile"):
        self._file = weakref.ref(file)
        self.keys = []
        self.key = None
        self.record = None

    @property
    def file(self) -> "ROOTFile":
        file = self._file()
        if file is None or file.closed:
            msg = "The file of this directory has been closed"
            raise FileClosedError(msg)
        return file

    @staticmethod
    def record_size(version: int) -> int:
        return TDirectory.record_size(version)

    def name(self) -> str:
        return self.key.fName.fString.decode() if self.key else ""

    def title(self) -> str:
        return self.key.fTitle.fString.decode() if self.key else ""

    def seekdir(self) -> int:
        if self.record is None:
            msg = "Directory.seekdir: the directory record has not been read"
            raise FormatError(msg)
        return self.record.fSeekDir

    def read_dir_info(self) -> None:
        """Decode the key and directory record found at fBEGIN."""
        file = self.file
        header = file.header
        nbytes = header.fNbytesName + self.record_size(header.fVersion)
        if header.fBEGIN + nbytes > header.fEND:
            msg = f"Directory record [{header.fBEGIN}, {header.fBEGIN + nbytes}) ends past fEND={header.fEND}"
            raise FormatError(msg)
        buffer = file.fetch_data(header.fBEGIN, nbytes)
        key, _ = TKey.read(buffer)
        if key.fSeekKey != header.fBEGIN:
            msg = f"Directory.read_dir_info: fSeekKey mismatch {key.fSeekKey} != {header.fBEGIN}"
            raise FormatError(msg)
        record, _ = TDirectory.read(buffer[header.fNbytesName :])
        key.attach(file)
        self.key = key
        self.record = record
        log.debug(
            "directory %r: seekdir=%d seekkeys=%d nbyteskeys=%d",
            self.name(),
            record.fSeekDir,
            record.fSeekKeys,
            record.header.fNbytesKeys,
        )

    def read_keys(self) -> None:
        """Decode the KeysList record of this directory."""
        file = self.file
        record = self.record
        if record is None:
            msg = "Directory.read_keys: the directory record has not been read"
            raise FormatError(msg)
        if record.fSeekKeys == 0:
            self.keys = []
            return
        buffer = file.fetch_data(record.fSeekKeys, record.header.fNbytesKeys)
        key, buffer = TKey.read(buffer)
        if key.fSeekKey != record.fSeekKeys:
            msg = f"Directory.read_keys: fSeekKey mismatch {key.fSeekKey} != {record.fSeekKeys}"
            raise FormatError(msg)
        if key.fSeekPdir != record.fSeekDir:
            msg = f"Directory.read_keys: fSeekPdir mismatch {key.fSeekPdir} != {record.fSeekDir}"
            raise FormatError(msg)
        # the record may be padded past the last key (e.g. after deletions)
        keylist, _ = TKeyList.read(buffer)
        for k in keylist.fKeys:
            k.attach(file)
        self.keys = keylist.fKeys
        log.debug("directory %r: %d keys", self.name(), len(self.keys))

    def find(self, namecycle: str) -> TKey:
        name, cycle = parse_namecycle(namecycle)
        bname = name.encode()
        matches = [k for k in self.keys if k.fName.fString == bname]
        if cycle is not None:
            matches = [k for k in matches if k.header.fCycle == cycle]
        if not matches:
            msg = f"No key {namecycle!r} in directory {self.name()!r}"
            raise KeyNotFoundError(msg)
        return max(matches, key=lambda k: k.header.fCycle)

    def get(self, namecycle: str) -> ROOTSerializable:
        return self.find(namecycle).read_object()

    def next_cycle(self, name: bytes) -> int:
        cycles = [k.header.fCycle for k in self.keys if k.fName.fString == name]
        return max(cycles, default=0) + 1

    def add_key(self, key: TKey) -> None:
        self.keys.append(key)

    def remove_key(self, key: TKey) -> None:
        self.keys = [k for k in self.keys if k is not key]

    def clear(self) -> None:
        """Detach and forget all keys, the file is going away."""
        for k in self.keys:
            k.detach()
        if self.key is not None:
            self.key.detach()
        self.keys = []

    # Write side

    def init(self, key: TKey, record: TDirectory) -> None:
        """Set up a new directory stored under key."""
        self.key = key
        self.record = record

    def write_header_record(self) -> None:
        """Write the key, name, title and directory record of a new file at fBEGIN."""
        if self.key is None or self.record is None:
            msg = "Directory.write_header_record: directory is not initialized"
            raise FormatError(msg)
        payload = WBuffer()
        TFile(
            fName=TString(self.key.fName.fString),
            fTitle=TString(self.key.fTitle.fString),
            rootdir=self.record,
        ).write(payload)
        payload.check()
        self.file.write_at(self.key.record(payload.getvalue()), self.key.fSeekKey)

    def write_record(self) -> None:
        """Rewrite the directory record in place."""
        if self.record is None:
            msg = "Directory.write_record: directory is not initialized"
            raise FormatError(msg)
        record = self.record
        record.header.fDatimeM = datetime_to_TDatime()
        seeks = (record.fSeekDir, record.fSeekParent, record.fSeekKeys)
        if not record.header.is_large() and max(seeks) > kStartBigFile:
            # 64 bit seeks fill the padding of the small record
            record.header.fVersion += 1000
        buffer = WBuffer()
        record.write(buffer)
        buffer.check()
        self.file.write_at(buffer.getvalue(), record.fSeekDir + record.header.fNbytesName)

    def write_keys_list(self) -> None:
        """Write the KeysList record and point the directory record to it."""
        file = self.file
        record = self.record
        if self.key is None or record is None:
            msg = "Directory.write_keys_list: directory is not initialized"
            raise FormatError(msg)
        payload = WBuffer()
        TKeyList(fKeys=self.keys).write(payload)
        payload.check()
        key = file.new_key(
            classname=self.key.fClassName.fString,
            name=self.key.fName.fString,
            title=self.key.fTitle.fString,
            objlen=len(payload),
            seekpdir=record.fSeekDir,
        )
        file.write_at(key.record(payload.getvalue()), key.fSeekKey)
        record.fSeekKeys = key.fSeekKey
        record.header.fNbytesKeys = key.header.fNbytes
        log.debug(
            "directory %r: wrote %d keys at %d", self.name(), len(self.keys), key.fSeekKey
        )
