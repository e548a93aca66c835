"""Clock adapters."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from cadence.core.schedule import DEFAULT_TIMEZONE


class SystemClock:
    """
    Wall clock in the reporting timezone.

    Implements Clock protocol.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock:
    """
    Clock pinned to one instant (tests, `--as-of` runs).

    Implements Clock protocol. Naive instants are taken to be in `timezone`.
    """

    def __init__(self, instant: datetime, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = timezone
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=ZoneInfo(timezone))
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **delta) -> None:
        """Move the pinned instant forward, e.g. advance(days=7)."""
        self.instant = self.instant + timedelta(**delta)
