import logging
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from rootfileio.bootstrap.TStreamerInfo import TStreamerInfo

log = logging.getLogger(__name__)

StreamerIdentity = tuple[bytes, int, int]


class StreamerRegistry:
    """An append-only collection of TStreamerInfo records shared by open files.

    Files that store the same class share its streamer info, so the first
    description of a (class name, class version, checksum) triple is kept and
    later ones are ignored. Entries are never removed. Inserts are guarded by
    a lock since files may be opened from several threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._infos: dict[StreamerIdentity, "TStreamerInfo"] = {}

    @staticmethod
    def identity(info: "TStreamerInfo") -> StreamerIdentity:
        return (info.fName.fString, info.fClassVersion, info.fCheckSum)

    def add(self, info: "TStreamerInfo") -> bool:
        """Register a streamer info, return False if it was already known."""
        key = self.identity(info)
        with self._lock:
            if key in self._infos:
                return False
            self._infos[key] = info
        log.debug("registered streamer info for %r v%d", key[0], key[1])
        return True

    def get(
        self, name: bytes, version: Optional[int] = None
    ) -> Optional["TStreamerInfo"]:
        """Find the streamer info of a class.

        Without a version the highest registered class version is returned.
        """
        matches = [
            info
            for (iname, iversion, _), info in self.snapshot()
            if iname == name and (version is None or iversion == version)
        ]
        if not matches:
            return None
        return max(matches, key=lambda info: info.fClassVersion)

    def snapshot(self) -> list[tuple[StreamerIdentity, "TStreamerInfo"]]:
        with self._lock:
            return list(self._infos.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._infos)

    def __contains__(self, info: "TStreamerInfo") -> bool:
        key = self.identity(info)
        with self._lock:
            return key in self._infos

    def __iter__(self) -> Iterator["TStreamerInfo"]:
        return iter([info for _, info in self.snapshot()])


streamers = StreamerRegistry()
"""The registry used by open() and create() unless another one is given"""
