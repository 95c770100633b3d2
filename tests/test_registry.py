from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TList import TObjArray
from rootfileio.bootstrap.TObject import _new_TObject_members
from rootfileio.bootstrap.TStreamerInfo import TStreamerInfo
from rootfileio.registry import StreamerRegistry


def _info(name: bytes, version: int, checksum: int = 0) -> TStreamerInfo:
    return TStreamerInfo(
        **_new_TObject_members(),
        fName=TString(name),
        fTitle=TString(b""),
        fCheckSum=checksum,
        fClassVersion=version,
        fObjects=TObjArray(
            **_new_TObject_members(),
            fName=TString(b""),
            fSize=0,
            fLowerBound=0,
            objects=(),
        ),
    )


def test_add_deduplicates():
    registry = StreamerRegistry()
    first = _info(b"TH1F", 3, 0xABCD)
    assert registry.add(first)
    assert not registry.add(_info(b"TH1F", 3, 0xABCD))
    assert registry.add(_info(b"TH1F", 3, 0x1234))
    assert len(registry) == 2
    assert first in registry
    assert list(registry)[0] is first


def test_get_highest_version():
    registry = StreamerRegistry()
    for version in (2, 5, 3):
        registry.add(_info(b"TAxis", version))
    registry.add(_info(b"TH1", 8))
    found = registry.get(b"TAxis")
    assert found is not None
    assert found.fClassVersion == 5
    found = registry.get(b"TAxis", 3)
    assert found is not None
    assert found.fClassVersion == 3
    assert registry.get(b"TAxis", 4) is None
    assert registry.get(b"TGraph") is None


def test_concurrent_adds():
    registry = StreamerRegistry()
    infos = [_info(b"Class%d" % i, 1, i) for i in range(50)]

    def add_all(_: int) -> int:
        return sum(registry.add(info) for info in infos)

    with ThreadPoolExecutor(max_workers=8) as pool:
        added = list(pool.map(add_all, range(8)))
    assert sum(added) == 50
    assert len(registry) == 50
    assert {info.fName.fString for info in registry} == {
        b"Class%d" % i for i in range(50)
    }
