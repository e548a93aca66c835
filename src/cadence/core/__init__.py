"""Functional core - pure scheduling and board logic with no I/O."""

from .recurrence import InvalidRuleError, Pattern, RecurrenceRule, ScheduleFrom, validate_rule
from .schedule import date_key, end_of_day, generate_up_to, next_occurrence, preview_occurrences
from .tasks import Priority, Status, Task
from .calendar import CalendarEvent, filter_events_by_date, sort_events_by_start
from .series import Series, SeriesKind, stable_series_id
from .board import (
    BoardFilters,
    BoardItem,
    SortSpec,
    Urgency,
    apply_board,
    classify,
    group_columns,
    transition_patch,
    valid_transition,
)

__all__ = [
    # Recurrence
    "InvalidRuleError",
    "Pattern",
    "RecurrenceRule",
    "ScheduleFrom",
    "validate_rule",
    # Scheduling
    "date_key",
    "end_of_day",
    "generate_up_to",
    "next_occurrence",
    "preview_occurrences",
    # Tasks
    "Priority",
    "Status",
    "Task",
    # Calendar
    "CalendarEvent",
    "filter_events_by_date",
    "sort_events_by_start",
    # Series
    "Series",
    "SeriesKind",
    "stable_series_id",
    # Board
    "BoardFilters",
    "BoardItem",
    "SortSpec",
    "Urgency",
    "apply_board",
    "classify",
    "group_columns",
    "transition_patch",
    "valid_transition",
]
