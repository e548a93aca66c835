"""Pure calendar domain logic - no I/O dependencies."""

from dataclasses import dataclass, field
from datetime import date, datetime

from .tasks import parse_date, parse_datetime


@dataclass
class CalendarEvent:
    """An event on the company calendar."""

    id: str
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    type: str = "event"  # meeting, call, deadline, reminder, event
    attendees: list[str] = field(default_factory=list)
    series_id: str | None = None
    instance_date: date | None = None

    def format_time(self) -> str:
        """Format the event time for display."""
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    @classmethod
    def from_api(cls, data: dict) -> "CalendarEvent":
        """Create CalendarEvent from a dashboard API / store record."""
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            start=parse_datetime(data["start"]),
            end=parse_datetime(data["end"]),
            description=data.get("description") or "",
            location=data.get("location") or "",
            type=data.get("type") or "event",
            attendees=list(data.get("attendees") or []),
            series_id=data.get("recurrenceSeriesId"),
            instance_date=parse_date(data.get("recurrenceInstanceDate")),
        )

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "description": self.description,
            "location": self.location,
            "type": self.type,
            "attendees": self.attendees,
            "recurrenceSeriesId": self.series_id,
            "recurrenceInstanceDate": self.instance_date.isoformat() if self.instance_date else None,
        }


def filter_events_by_date(
    events: list[CalendarEvent],
    start_date: date,
    end_date: date | None = None,
) -> list[CalendarEvent]:
    """
    Filter events to those starting within a date range (inclusive).

    Pure function - no I/O.
    """
    end_date = end_date or start_date
    return [e for e in events if start_date <= e.start.date() <= end_date]


def sort_events_by_start(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """Sort events by start time."""
    return sorted(events, key=lambda e: e.start)
