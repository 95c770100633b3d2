"""Minimal set of types found in TFile-like ROOT files

With these, we can read the self-describing part of the file, namely the
TStreamerInfo dictionary of types, along with the directory structure and
object references (TKey), and write new files holding simple objects.

These types generally hold big-endian encoded primitive types.
"""

from rootfileio.bootstrap.compression import Chunk, ChunkHeader, decompress
from rootfileio.bootstrap.streamedobject import Ref, StreamedObject
from rootfileio.bootstrap.strings import STLString, TString, string
from rootfileio.bootstrap.TDatime import TDatime
from rootfileio.bootstrap.TDirectory import TDirectory, TKeyList
from rootfileio.bootstrap.TFile import FileHeader, TFile, VersionInfo
from rootfileio.bootstrap.TFree import TFree
from rootfileio.bootstrap.TKey import TKey
from rootfileio.bootstrap.TList import TCollection, TList, TObjArray, TSeqCollection
from rootfileio.bootstrap.TObject import TNamed, TObject, TObjString
from rootfileio.bootstrap.TStreamerInfo import (
    TStreamerBase,
    TStreamerBasicPointer,
    TStreamerBasicType,
    TStreamerElement,
    TStreamerInfo,
    TStreamerLoop,
    TStreamerObject,
    TStreamerObjectAny,
    TStreamerObjectAnyPointer,
    TStreamerObjectPointer,
    TStreamerSTL,
    TStreamerSTLstring,
    TStreamerString,
)
from rootfileio.bootstrap.TUUID import TUUID

__all__ = [
    "Chunk",
    "ChunkHeader",
    "FileHeader",
    "Ref",
    "STLString",
    "StreamedObject",
    "TCollection",
    "TDatime",
    "TDirectory",
    "TFile",
    "TFree",
    "TKey",
    "TKeyList",
    "TList",
    "TNamed",
    "TObjArray",
    "TObjString",
    "TObject",
    "TSeqCollection",
    "TStreamerBase",
    "TStreamerBasicPointer",
    "TStreamerBasicType",
    "TStreamerElement",
    "TStreamerInfo",
    "TStreamerLoop",
    "TStreamerObject",
    "TStreamerObjectAny",
    "TStreamerObjectAnyPointer",
    "TStreamerObjectPointer",
    "TStreamerSTL",
    "TStreamerSTLstring",
    "TStreamerString",
    "TString",
    "TUUID",
    "VersionInfo",
    "decompress",
    "string",
]
