from __future__ import annotations

import pytest

from rootfileio.blocks import FreeBlock, FreeBlocks
from rootfileio.constants import kGrowthIncrement, kStartBigFile
from rootfileio.errors import AllocatorInvariantError


@pytest.mark.parametrize(
    "ranges",
    [
        [(0, 9), (10, 19)],
        [(10, 19), (0, 9)],
    ],
)
def test_adjacent_ranges_merge(ranges: list[tuple[int, int]]):
    blocks = FreeBlocks()
    for first, last in ranges:
        blocks.release(first, last)
    assert list(blocks) == [FreeBlock(0, 19)]


def test_add_to_empty_list():
    blocks = FreeBlocks()
    assert blocks.add(0, 9) is None
    assert len(blocks) == 0


def test_add_closes_gap():
    blocks = FreeBlocks([FreeBlock(0, 9), FreeBlock(20, 29)])
    assert blocks.add(10, 19) == 0
    assert list(blocks) == [FreeBlock(0, 29)]


def test_add_inserts_in_order():
    blocks = FreeBlocks([FreeBlock(20, 29), FreeBlock(100, 199)])
    assert blocks.add(0, 9) == 0
    assert blocks.add(50, 59) == 2
    assert list(blocks) == [
        FreeBlock(0, 9),
        FreeBlock(20, 29),
        FreeBlock(50, 59),
        FreeBlock(100, 199),
    ]
    assert blocks.add(300, 309) is None


def test_release_returns_merged_block():
    blocks = FreeBlocks([FreeBlock(0, 9), FreeBlock(20, kStartBigFile)])
    blk = blocks.release(10, 19)
    assert blk == FreeBlock(0, kStartBigFile)
    assert blk is blocks.last
    blk = blocks.release(kStartBigFile + 10, kStartBigFile + 19)
    assert blk is blocks[1]
    assert blk.size() == 10


def test_best_prefers_exact_fit():
    blocks = FreeBlocks([FreeBlock(0, 99), FreeBlock(200, 209)])
    assert blocks.best(10) is blocks[1]
    assert blocks.best(50) is blocks[0]


def test_best_needs_room_to_split():
    blocks = FreeBlocks([FreeBlock(0, 9), FreeBlock(20, 119)])
    assert blocks.best(6) is blocks[0]
    # 10 bytes would leave a fragment of 2
    assert blocks.best(8) is blocks[1]


def test_best_grows_last_block():
    blocks = FreeBlocks([FreeBlock(0, 9), FreeBlock(100, 104)])
    blk = blocks.best(50)
    assert blk is blocks.last
    assert blk == FreeBlock(100, 104 + kGrowthIncrement)


def test_remove_unknown_block():
    blocks = FreeBlocks([FreeBlock(0, 9)])
    with pytest.raises(AllocatorInvariantError):
        blocks.remove(FreeBlock(20, 29))
    with pytest.raises(AllocatorInvariantError):
        _ = FreeBlocks().last


def test_allocate():
    blocks = FreeBlocks([FreeBlock(100, 149), FreeBlock(200, kStartBigFile)])
    assert blocks.allocate(50) == 100
    assert list(blocks) == [FreeBlock(200, kStartBigFile)]
    assert blocks.allocate(30) == 200
    assert blocks.allocate(30) == 230
    assert list(blocks) == [FreeBlock(260, kStartBigFile)]
