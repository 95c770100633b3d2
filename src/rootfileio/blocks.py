"""Bookkeeping of the unused byte ranges ("free segments") of a ROOT file.

ROOT keeps a list of free blocks ordered by their first byte. New records are
carved out of the best fitting block and released records are merged back
into their neighbours. The last block always extends to the end of the
addressable space and is where the file grows.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Optional

from rootfileio.constants import kGrowthIncrement, kMinFragment
from rootfileio.errors import AllocatorInvariantError


@dataclass
class FreeBlock:
    """A free byte range of a file, both ends inclusive."""

    first: int
    """First free byte"""
    last: int
    """Last free byte"""

    def size(self) -> int:
        return self.last - self.first + 1


class FreeBlocks:
    """Ordered list of disjoint free blocks."""

    blocks: list[FreeBlock]

    def __init__(self, blocks: Iterable[FreeBlock] = ()):
        self.blocks = list(blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[FreeBlock]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> FreeBlock:
        return self.blocks[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FreeBlocks):
            return NotImplemented
        return self.blocks == other.blocks

    def __repr__(self) -> str:
        return f"FreeBlocks({self.blocks!r})"

    @property
    def last(self) -> FreeBlock:
        """The trailing block, which extends to the end of the addressable space."""
        if not self.blocks:
            msg = "FreeBlocks.last: the free block list is empty"
            raise AllocatorInvariantError(msg)
        return self.blocks[-1]

    def add(self, first: int, last: int) -> Optional[int]:
        """Mark [first, last] as free.

        The range is merged into the block it extends, or inserted in front of
        the first block that starts after it. Returns the index of the block
        that was touched, or None if the range lies after every block (the
        caller then appends it, see release()).
        """
        for i, blk in enumerate(self.blocks):
            if blk.last == first - 1:
                blk.last = last
                if i + 1 >= len(self.blocks):
                    return i
                following = self.blocks[i + 1]
                if following.first > last + 1:
                    return i
                # the range closed the gap to the following block
                blk.last = following.last
                del self.blocks[i + 1]
                return i
            if blk.first == last + 1:
                blk.first = first
                return i
            if first < blk.first:
                self.blocks.insert(i, FreeBlock(first, last))
                return i
        return None

    def release(self, first: int, last: int) -> FreeBlock:
        """Mark [first, last] as free and return the (merged) block holding it."""
        index = self.add(first, last)
        if index is None:
            self.blocks.append(FreeBlock(first, last))
            index = len(self.blocks) - 1
        return self.blocks[index]

    def best(self, nbytes: int) -> FreeBlock:
        """Find the free block where to store nbytes.

        An exact fit wins. Otherwise the first block that still leaves more
        than kMinFragment bytes after the record is used. If there is none,
        the trailing block grows by kGrowthIncrement and is returned.
        """
        candidate: Optional[FreeBlock] = None
        for blk in self.blocks:
            nleft = blk.size()
            if nleft == nbytes:
                return blk
            if candidate is None and nleft > nbytes + kMinFragment:
                candidate = blk
        if candidate is not None:
            return candidate
        # TODO: grow by max(kGrowthIncrement, nbytes) once ROOT's behaviour for
        # records larger than the increment is pinned down
        blk = self.last
        blk.last += kGrowthIncrement
        return blk

    def remove(self, blk: FreeBlock) -> None:
        """Remove a block previously returned by best()."""
        try:
            self.blocks.remove(blk)
        except ValueError:
            msg = f"FreeBlocks.remove: {blk} is not a free block"
            raise AllocatorInvariantError(msg) from None

    def allocate(self, nbytes: int) -> int:
        """Reserve nbytes and return the offset of the reserved range."""
        blk = self.best(nbytes)
        seek = blk.first
        if blk.size() == nbytes:
            self.remove(blk)
        else:
            blk.first += nbytes
        return seek
