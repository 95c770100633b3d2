from dataclasses import dataclass
from enum import Enum
from typing import Any

from rootfileio.serializable import ROOTSerializable

DICTIONARY: dict[str, type[ROOTSerializable]] = {}

# TODO: is this encoding correct?
ENCODING = "utf-8"


def normalize(s: bytes) -> str:
    """Convert the ROOT C++ class name to a representation that is valid in Python.

    This is used to generate the class name in the DICTIONARY.
    """
    return (
        s.decode(ENCODING)
        .replace(":", "3a")
        .replace("<", "3c")
        .replace(">", "3e")
        .replace(",", "2c")
        .replace(" ", "20")
        .replace("*", "2a")
    )


class ObjectKind(Enum):
    """The closed set of kinds a decoded object value can have."""

    STREAMER_INFO = "streamer_info"
    """A TStreamerInfo schema descriptor"""
    LIST = "list"
    """A homogeneous collection (TList)"""
    DIRECTORY = "directory"
    """A TDirectory"""
    REFERENCE = "reference"
    """A reference to an object streamed elsewhere in the same buffer"""
    OBJECT = "object"
    """Anything else"""


KINDS: dict[str, ObjectKind] = {
    "TStreamerInfo": ObjectKind.STREAMER_INFO,
    "TList": ObjectKind.LIST,
    "TDirectory": ObjectKind.DIRECTORY,
    "TDirectoryFile": ObjectKind.DIRECTORY,
}


def kind_of(typename: str) -> ObjectKind:
    """Tag for the normalized class name of a decoded object."""
    return KINDS.get(typename, ObjectKind.OBJECT)


@dataclass(frozen=True)
class Decoded:
    """A decoded object value together with its kind."""

    kind: ObjectKind
    obj: Any

    @classmethod
    def of(cls, obj: Any) -> "Decoded":
        return cls(kind_of(type(obj).__name__), obj)
