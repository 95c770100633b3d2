"""
Copyright (c) 2025 Nick Smith. All rights reserved.

rootfileio: reading and writing the ROOT file container format
"""

from __future__ import annotations

from rootfileio._version import version as __version__
from rootfileio.errors import (
    BootstrapError,
    FileClosedError,
    FormatError,
    KeyNotFoundError,
    RangeError,
    ROOTIOError,
    ShortReadError,
)
from rootfileio.file import ROOTFile, create, open
from rootfileio.registry import StreamerRegistry, streamers

__all__ = [
    "BootstrapError",
    "FileClosedError",
    "FormatError",
    "KeyNotFoundError",
    "ROOTFile",
    "ROOTIOError",
    "RangeError",
    "ShortReadError",
    "StreamerRegistry",
    "__version__",
    "create",
    "open",
    "streamers",
]
