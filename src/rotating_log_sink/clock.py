"""Local wall-clock access.

The only platform-coupled operation in the sink is finding the local UTC
offset.  It lives in :func:`local_offset`; everything else asks a
:class:`SystemClock` (or a test double with the same methods) for the
current local time.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional


class UnsupportedPlatformError(RuntimeError):
    """Raised when the host cannot report its local UTC offset."""


def local_offset() -> timedelta:
    """Return the current local offset from UTC.

    Raises
    ------
    UnsupportedPlatformError
        If the platform does not expose ``tm_gmtoff``.
    """
    offset: Optional[int] = getattr(time.localtime(), "tm_gmtoff", None)
    if offset is None:
        raise UnsupportedPlatformError("local UTC offset is not available on this platform")
    return timedelta(seconds=offset)


class SystemClock:
    """Local time derived from UTC now plus :func:`local_offset`."""

    def now(self) -> datetime:
        utc = datetime.now(timezone.utc).replace(tzinfo=None)
        return utc + local_offset()

    def today(self) -> date:
        return self.now().date()


def seconds_until_tomorrow(current: date, now: datetime) -> float:
    """Seconds from *now* until local midnight after *current*.

    The result is negative or zero once that midnight has passed, which
    callers treat as "rotate immediately".
    """
    tomorrow = datetime.combine(current + timedelta(days=1), datetime.min.time())
    return (tomorrow - now).total_seconds()
