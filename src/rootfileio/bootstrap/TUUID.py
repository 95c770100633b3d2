import uuid
from uuid import UUID

from rootfileio.buffer import ReadBuffer, WBuffer
from rootfileio.serializable import Members, ROOTSerializable, serializable


@serializable
class TUUID(ROOTSerializable):
    fVersion: int
    fUUID: UUID

    @classmethod
    def update_members(cls, members: Members, buffer: ReadBuffer):
        (fVersion,), buffer = buffer.unpack(">h")
        data, buffer = buffer.consume(16)
        fUUID = UUID(bytes=data)
        members["fVersion"] = fVersion
        members["fUUID"] = fUUID
        return members, buffer

    def write_members(self, buffer: WBuffer) -> None:
        buffer.write_i16(self.fVersion)
        buffer.write_bytes(self.fUUID.bytes)

    @classmethod
    def new(cls) -> "TUUID":
        """A fresh time-based identifier, as ROOT generates them."""
        return cls(fVersion=1, fUUID=uuid.uuid1())
