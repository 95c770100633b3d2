from datetime import datetime
from typing import Annotated, Optional

from rootfileio.structutil import Fmt


def TDatime_to_datetime(fDatime: int) -> datetime:
    """Convert fDatime to datetime

    Using the ROOT file convention
    (year-1995)<<26|month<<22|day<<17|hour<<12|minute<<6|second

    Args:
        fDatime (int): fDatime value

    Returns:
        datetime: datetime object
    """
    return datetime(
        year=(fDatime >> 26) + 1995,
        month=(fDatime >> 22) & 0xF,
        day=(fDatime >> 17) & 0x1F,
        hour=(fDatime >> 12) & 0x1F,
        minute=(fDatime >> 6) & 0x3F,
        second=(fDatime & 0x3F),
    )


def datetime_to_TDatime(when: Optional[datetime] = None) -> int:
    """Inverse of TDatime_to_datetime, defaults to the current local time."""
    if when is None:
        when = datetime.now()
    if when.year < 1995:
        msg = f"TDatime cannot hold dates before 1995: {when}"
        raise ValueError(msg)
    return (
        (when.year - 1995) << 26
        | when.month << 22
        | when.day << 17
        | when.hour << 12
        | when.minute << 6
        | when.second
    )


# TODO: convert to datetime through a MemberSerDe
TDatime = Annotated[int, Fmt(">I")]
