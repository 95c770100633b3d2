"""Schema descriptors found in the StreamerInfo record.

A file lists one TStreamerInfo per (class, class version) it stores. Each
holds the streamer elements of the class in streaming order. The elements
are decoded so the descriptors can be registered and inspected, the type
codes they carry are kept as the integers found on disk.
Reference: https://root.cern/doc/master/streamerinfo.html
"""

from dataclasses import dataclass
from typing import Annotated

from rootfileio.bootstrap.strings import TString
from rootfileio.bootstrap.TList import TObjArray
from rootfileio.bootstrap.TObject import TNamed
from rootfileio.dispatch import DICTIONARY, normalize
from rootfileio.serializable import serializable
from rootfileio.structutil import Fmt


@serializable
class TStreamerInfo(TNamed):
    """On-disk layout of one version of a class, fName is the class name."""

    fCheckSum: Annotated[int, Fmt(">I")]
    fClassVersion: Annotated[int, Fmt(">i")]
    fObjects: TObjArray

    def class_name(self) -> str:
        return normalize(self.fName.fString)

    def elements(self) -> list["TStreamerElement"]:
        """Base classes and data members, in streaming order."""
        return [obj for obj in self.fObjects.objects if isinstance(obj, TStreamerElement)]

    def base_classes(self) -> list[str]:
        return [e.member_name() for e in self.elements() if isinstance(e, TStreamerBase)]


DICTIONARY["TStreamerInfo"] = TStreamerInfo


@dataclass
class ArrayDim:
    dim0: int
    dim1: int
    dim2: int
    dim3: int
    dim4: int


@serializable
class TStreamerElement(TNamed):
    """One base class or data member of a TStreamerInfo.

    fName is the member name (the class name for a base), fTitle its comment.
    """

    fType: Annotated[int, Fmt(">i")]
    """Type code (TVirtualStreamerInfo::EReadWrite), 0 for a base class"""
    fSize: Annotated[int, Fmt(">i")]
    """Size of the basic type, 0 for objects"""
    fArrayLength: Annotated[int, Fmt(">i")]
    fArrayDim: Annotated[int, Fmt(">i")]
    fMaxIndex: Annotated[ArrayDim, Fmt(">5i")]
    fTypeName: TString

    def member_name(self) -> str:
        return normalize(self.fName.fString)

    def type_name(self) -> str:
        return normalize(self.fTypeName.fString)


@serializable
class TStreamerBase(TStreamerElement):
    fBaseVersion: Annotated[int, Fmt(">i")]
    """Class version of the base"""


@serializable
class TStreamerBasicPointer(TStreamerElement):
    """A pointer to basic types, sized by another member (the counter)."""

    fCountVersion: Annotated[int, Fmt(">i")]
    fCountName: TString
    fCountClass: TString


@serializable
class TStreamerLoop(TStreamerElement):
    """A pointer to objects, sized by a counter member."""

    # ROOT derives it from TStreamerElement, not TStreamerBasicPointer
    fCountVersion: Annotated[int, Fmt(">i")]
    fCountName: TString
    fCountClass: TString


@serializable
class TStreamerSTL(TStreamerElement):
    fSTLtype: Annotated[int, Fmt(">i")]
    """Container code (ESTLType): 1 vector, 2 list, 4 map, 6 set, ..."""
    fCType: Annotated[int, Fmt(">i")]
    """Type code of the contained values, 365 for std::string"""


@serializable
class TStreamerSTLstring(TStreamerSTL):
    pass


# elements that add nothing to TStreamerElement
@serializable
class TStreamerBasicType(TStreamerElement):
    pass


@serializable
class TStreamerString(TStreamerElement):
    pass


@serializable
class TStreamerObject(TStreamerElement):
    pass


@serializable
class TStreamerObjectPointer(TStreamerElement):
    pass


@serializable
class TStreamerObjectAny(TStreamerElement):
    pass


@serializable
class TStreamerObjectAnyPointer(TStreamerElement):
    pass


for _cls in (
    TStreamerElement,
    TStreamerBase,
    TStreamerBasicPointer,
    TStreamerLoop,
    TStreamerSTL,
    TStreamerSTLstring,
    TStreamerBasicType,
    TStreamerString,
    TStreamerObject,
    TStreamerObjectPointer,
    TStreamerObjectAny,
    TStreamerObjectAnyPointer,
):
    DICTIONARY[_cls.__name__] = _cls
