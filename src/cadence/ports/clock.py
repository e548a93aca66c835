"""Clock interface."""

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Source of "now" in the reporting timezone."""

    timezone: str

    def now(self) -> datetime:
        """Current instant, timezone-aware."""
        ...
