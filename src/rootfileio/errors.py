"""Exception hierarchy for rootfileio."""


class ROOTIOError(Exception):
    """Base class for all errors reported while reading or writing a ROOT file."""


class FormatError(ROOTIOError, ValueError):
    """The data does not follow the ROOT file format.

    Raised for a bad magic, a truncated header or a record whose
    self-referencing offset does not match where it was read from.
    """


class RangeError(ROOTIOError, ValueError):
    """A pointer in the file header points outside of the file."""


class ShortReadError(ROOTIOError):
    """Fewer bytes were available than requested."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"requested {expected} bytes, got {actual} bytes")


class BootstrapError(ROOTIOError):
    """One of the stages run while opening a file failed.

    The failing stage is in `stage` and the original error is the `__cause__`.
    """

    def __init__(self, stage: str, path: str):
        self.stage = stage
        self.path = path
        super().__init__(f"failed to read ROOT {stage} of {path!r}")


class KeyNotFoundError(ROOTIOError, KeyError):
    """No key with the requested name and cycle exists in the directory."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class FileClosedError(ROOTIOError, ValueError):
    """The file (or the file a key belongs to) has been closed."""


class AllocatorInvariantError(AssertionError):
    """A free block that is not in the free block list was removed.

    This is a programming error in the caller, not a problem with the file.
    """
