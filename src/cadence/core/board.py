"""Task board view logic: urgency, filter/sort, kanban columns, transitions.

Pure functions - no I/O. "Now" is always passed in, never read from a clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from .schedule import DEFAULT_TIMEZONE
from .tasks import PRIORITY_ORDER, STATUS_ORDER, Priority, Status, Task

DUE_SOON_WINDOW = timedelta(hours=24)


def _aware(value: datetime) -> datetime:
    # Naive timestamps are local to the reporting timezone
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(DEFAULT_TIMEZONE))
    return value


class Urgency(Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    NORMAL = "normal"


def classify(
    due_date: datetime | None,
    status: Status,
    now: datetime,
    window: timedelta = DUE_SOON_WINDOW,
) -> Urgency:
    """
    Urgency of a due-dated item relative to `now`.

    Completed items are always normal, whatever their due date.
    """
    if status is Status.COMPLETED or due_date is None:
        return Urgency.NORMAL
    due_date, now = _aware(due_date), _aware(now)
    if due_date < now:
        return Urgency.OVERDUE
    if due_date <= now + window:
        return Urgency.DUE_SOON
    return Urgency.NORMAL


@dataclass(frozen=True)
class BoardFilters:
    """Conjunctive board filters. None / empty means "don't filter"."""

    status: Status | None = None
    priority: Priority | None = None
    space_id: str | None = None
    search: str = ""
    show_completed: bool = True

    def matches(self, task: Task) -> bool:
        if not self.show_completed and task.is_completed and self.status is not Status.COMPLETED:
            return False
        if self.status is not None and task.status is not self.status:
            return False
        if self.priority is not None and task.priority is not self.priority:
            return False
        if self.space_id is not None and task.space_id != self.space_id:
            return False
        if self.search:
            needle = self.search.casefold()
            haystack = f"{task.title}\n{task.description}".casefold()
            if needle not in haystack:
                return False
        return True


SORT_KEYS = ("title", "due_date", "priority", "status", "created_at")


@dataclass(frozen=True)
class SortSpec:
    key: str = "created_at"
    descending: bool = False

    def __post_init__(self):
        if self.key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key {self.key!r}; expected one of {', '.join(SORT_KEYS)}")


def _sort_value(task: Task, key: str):
    match key:
        case "title":
            return task.title.casefold()
        case "due_date":
            return _aware(task.due_date) if task.due_date else None
        case "priority":
            return PRIORITY_ORDER[task.priority]
        case "status":
            return STATUS_ORDER[task.status]
        case "created_at":
            return _aware(task.created_at) if task.created_at else None


def sort_tasks(tasks: list[Task], sort: SortSpec) -> list[Task]:
    """
    Stable single-key sort. Ties keep input order in both directions.

    Tasks missing the key (no due date, no creation time) always go last.
    """
    present = [t for t in tasks if _sort_value(t, sort.key) is not None]
    missing = [t for t in tasks if _sort_value(t, sort.key) is None]
    ordered = sorted(present, key=lambda t: _sort_value(t, sort.key), reverse=sort.descending)
    return ordered + missing


@dataclass
class BoardItem:
    """A task annotated with its urgency for rendering."""

    task: Task
    urgency: Urgency


def apply_board(
    tasks: list[Task],
    filters: BoardFilters,
    sort: SortSpec,
    now: datetime,
    window: timedelta = DUE_SOON_WINDOW,
) -> list[BoardItem]:
    """Filter, sort and annotate the live task collection for the board."""
    visible = [t for t in tasks if filters.matches(t)]
    return [
        BoardItem(task=t, urgency=classify(t.due_date, t.status, now, window))
        for t in sort_tasks(visible, sort)
    ]


def group_columns(items: list[BoardItem]) -> dict[Status, list[BoardItem]]:
    """Split board items into kanban columns, in status order."""
    columns: dict[Status, list[BoardItem]] = {s: [] for s in sorted(Status, key=STATUS_ORDER.get)}
    for item in items:
        columns[item.task.status].append(item)
    return columns


def valid_transition(from_status: Status, to_status: Status) -> bool:
    """Any column to any column is allowed; there is no enforced workflow."""
    return True


def transition_patch(task: Task, to_status: Status, now: datetime) -> dict:
    """
    Field changes for moving a task to `to_status`.

    Entering completed stamps completedAt; leaving it clears completedAt.
    Re-completing an already completed task keeps its original stamp.
    """
    patch: dict = {"status": to_status.value}
    if to_status is Status.COMPLETED:
        if not task.is_completed or task.completed_at is None:
            patch["completedAt"] = now.isoformat()
    else:
        patch["completedAt"] = None
    return patch
