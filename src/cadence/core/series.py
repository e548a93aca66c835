"""Recurring series templates - pure, no I/O."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from .recurrence import RecurrenceRule
from .schedule import DEFAULT_TIMEZONE, at_time, date_key, end_of_day
from .tasks import Priority, Status, parse_date, parse_datetime, stable_series_id


class SeriesKind(Enum):
    TASK = "task"
    EVENT = "event"


@dataclass
class Series:
    """
    A recurring template for tasks or calendar events.

    `start` is the due date (tasks) or start time (events) of the first
    occurrence. `last_generated_anchor` is the anchor date of the most
    recently generated occurrence, None until backfill has run.
    """

    id: str
    title: str
    rule: RecurrenceRule
    start: datetime
    kind: SeriesKind = SeriesKind.TASK
    description: str = ""
    priority: Priority = Priority.NORMAL
    space_id: str | None = None
    assignee_id: int | None = None
    client_id: str | None = None
    attendees: list[str] = field(default_factory=list)
    location: str = ""
    duration: timedelta = timedelta(hours=1)
    checklist: list[dict] = field(default_factory=list)
    is_recurring: bool = True
    last_generated_anchor: date | None = None

    def origin(self, timezone: str = DEFAULT_TIMEZONE) -> date:
        """Anchor date of the first occurrence."""
        return date_key(self.start, timezone)

    def anchor(self, timezone: str = DEFAULT_TIMEZONE) -> date:
        """Date the next backfill run schedules from."""
        return self.last_generated_anchor or self.origin(timezone)

    def build_occurrence(self, instance_date: date, timezone: str = DEFAULT_TIMEZONE) -> dict:
        """Creation template for the occurrence anchored on `instance_date`."""
        common = {
            "title": self.title,
            "description": self.description,
            "recurrenceSeriesId": self.id,
            "recurrenceInstanceDate": instance_date.isoformat(),
        }

        if self.kind is SeriesKind.EVENT:
            local_start = self.start
            if local_start.tzinfo is not None:
                local_start = local_start.astimezone(ZoneInfo(timezone))
            start = at_time(instance_date, local_start.time(), timezone)
            return {
                **common,
                "start": start.isoformat(),
                "end": (start + self.duration).isoformat(),
                "location": self.location,
                "attendees": list(self.attendees),
                "isRecurring": True,
            }

        return {
            **common,
            "status": Status.TODO.value,
            "priority": self.priority.value,
            "dueDate": end_of_day(instance_date, timezone).isoformat(),
            "completedAt": None,
            "spaceId": self.space_id,
            "assignedToId": self.assignee_id,
            "clientId": self.client_id,
            "checklist": [{**item, "completed": False} for item in self.checklist],
            "isRecurring": True,
            **self.rule.to_api(),
        }

    @classmethod
    def from_api(cls, data: dict) -> "Series":
        """Create Series from a store record. Raises InvalidRuleError."""
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            rule=RecurrenceRule.from_api(data),
            start=parse_datetime(data["start"]),
            kind=SeriesKind(data.get("kind") or "task"),
            description=data.get("description") or "",
            priority=Priority(data.get("priority") or "normal"),
            space_id=data.get("spaceId"),
            assignee_id=data.get("assignedToId"),
            client_id=data.get("clientId"),
            attendees=list(data.get("attendees") or []),
            location=data.get("location") or "",
            duration=timedelta(minutes=data.get("durationMinutes") or 60),
            checklist=list(data.get("checklist") or []),
            is_recurring=data.get("isRecurring", True),
            last_generated_anchor=parse_date(data.get("lastGeneratedAnchor")),
        )

    @classmethod
    def from_task_record(cls, data: dict) -> "Series":
        """
        Series for a legacy recurring task that has no series id.

        The task itself is the first occurrence. Raises InvalidRuleError.
        """
        return cls.from_api(
            {
                **data,
                "id": stable_series_id(data),
                "start": data.get("dueDate") or data["createdAt"],
                "kind": SeriesKind.TASK.value,
                "isRecurring": True,
                "lastGeneratedAnchor": None,
            }
        )

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "kind": self.kind.value,
            "description": self.description,
            "priority": self.priority.value,
            "spaceId": self.space_id,
            "assignedToId": self.assignee_id,
            "clientId": self.client_id,
            "attendees": self.attendees,
            "location": self.location,
            "durationMinutes": int(self.duration.total_seconds() // 60),
            "checklist": self.checklist,
            "isRecurring": self.is_recurring,
            "lastGeneratedAnchor": (
                self.last_generated_anchor.isoformat() if self.last_generated_anchor else None
            ),
            **self.rule.to_api(),
        }
