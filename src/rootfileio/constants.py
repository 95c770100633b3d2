"""Fixed protocol constants of the ROOT file container format."""

MAGIC = b"root"
"""File identifier found in the first 4 bytes"""

ROOT_VERSION = 62206
"""File format version written by this package (ROOT 6.22/06)"""

kBEGIN = 100
"""Byte offset of the first data record"""

kStartBigFile = 2_000_000_000
"""Offsets past this limit need 8 byte pointers"""

kLargeFileFlag = 1_000_000
"""Added to the file format version when the file uses 8 byte pointers"""

kGrowthIncrement = 1_000_000_000
"""Amount the trailing free block grows when no free block is big enough"""

kMinFragment = 3
"""Free blocks are only split when more than this many bytes would be left"""

kLatestCycle = 9999
"""Cycle number meaning "highest cycle in the directory" """

kUUIDSize = 18
"""TUUID on disk: 2 byte version + 16 byte UUID"""

HEADER_SIZE_SMALL = 63
"""Size of the file header with 4 byte pointers"""

HEADER_SIZE_LARGE = 75
"""Size of the file header with 8 byte pointers"""

TDIRECTORY_VERSION = 5
"""TDirectoryFile class version written by this package"""

TKEY_VERSION = 4
"""TKey class version written by this package"""
