"""Pure task domain logic - no I/O dependencies."""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from .schedule import DEFAULT_TIMEZONE


class Status(Enum):
    """Board column a task sits in."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"


class Priority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Ascending rank; descending sorts put urgent / completed first
STATUS_ORDER = {
    Status.TODO: 0,
    Status.IN_PROGRESS: 1,
    Status.REVIEW: 2,
    Status.COMPLETED: 3,
}

PRIORITY_ORDER = {
    Priority.LOW: 0,
    Priority.NORMAL: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


def parse_datetime(value, timezone: str = DEFAULT_TIMEZONE) -> datetime | None:
    """
    Parse an ISO timestamp or date into an aware datetime.

    Values without an offset (including bare dates) are taken to be in the
    reporting timezone.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(timezone))
    return parsed


def parse_date(value) -> date | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def stable_series_id(data: dict) -> str:
    """
    Deterministic series id for legacy recurring tasks stored without one.

    Tasks that agree on these fields belong to the same series.
    """
    key = "|".join(
        str(data.get(name) or "")
        for name in (
            "title",
            "assignedToId",
            "clientId",
            "spaceId",
            "campaignId",
            "recurringPattern",
            "recurringInterval",
            "scheduleFrom",
        )
    )
    return "rec_" + hashlib.sha256(key.encode()).hexdigest()[:32]


def is_legacy_recurring(data: dict) -> bool:
    """A recurring task record that predates series ids."""
    return bool(data.get("isRecurring")) and not data.get("recurrenceSeriesId")


@dataclass
class Task:
    """
    A task on the board.

    Occurrences of a recurring series carry `series_id` and
    `instance_date`, the anchor date they were generated for. The anchor
    never changes when a user edits the due date.
    """

    id: str
    title: str
    status: Status = Status.TODO
    priority: Priority = Priority.NORMAL
    due_date: datetime | None = None
    description: str = ""
    space_id: str | None = None
    assignee_id: int | None = None
    client_id: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    series_id: str | None = None
    instance_date: date | None = None
    checklist: list[dict] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status is Status.COMPLETED

    @property
    def is_recurring(self) -> bool:
        return self.series_id is not None

    @classmethod
    def from_api(cls, data: dict) -> "Task":
        """
        Create Task from a dashboard API / store record.

        Legacy recurring records without a series id are given the stable
        id their series is grouped under.
        """
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            status=Status(data.get("status") or "todo"),
            priority=Priority(data.get("priority") or "normal"),
            due_date=parse_datetime(data.get("dueDate")),
            description=data.get("description") or "",
            space_id=data.get("spaceId"),
            assignee_id=data.get("assignedToId"),
            client_id=data.get("clientId"),
            created_at=parse_datetime(data.get("createdAt")),
            completed_at=parse_datetime(data.get("completedAt")),
            series_id=stable_series_id(data) if is_legacy_recurring(data) else data.get("recurrenceSeriesId"),
            instance_date=parse_date(data.get("recurrenceInstanceDate")),
            checklist=list(data.get("checklist") or []),
        )

    def to_api(self) -> dict:
        """Serialize using the dashboard's field names."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "description": self.description,
            "spaceId": self.space_id,
            "assignedToId": self.assignee_id,
            "clientId": self.client_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "recurrenceSeriesId": self.series_id,
            "recurrenceInstanceDate": self.instance_date.isoformat() if self.instance_date else None,
            "checklist": self.checklist,
        }


def latest_completed(tasks: list[Task]) -> Task | None:
    """The completed task with the most recent completion timestamp."""
    done = [t for t in tasks if t.is_completed and t.completed_at]
    if not done:
        return None
    return max(done, key=lambda t: t.completed_at)
