"""Recurrence rule value object - pure, no I/O."""

from dataclasses import dataclass
from datetime import date
from enum import Enum


class Pattern(Enum):
    """Unit a series repeats in."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ScheduleFrom(Enum):
    """Where the next occurrence of a task series is anchored."""

    DUE_DATE = "due_date"  # Fixed cadence ("every Monday")
    COMPLETION_DATE = "completion_date"  # Slides with each completion


# 0=Sunday..6=Saturday, as stored by the dashboard
WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class InvalidRuleError(ValueError):
    """Raised when a recurrence configuration is malformed."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


@dataclass(frozen=True)
class RecurrenceRule:
    """
    How a series repeats.

    Immutable: editing a rule means building a new one (see `replace`).
    Invariants are checked on construction.
    """

    pattern: Pattern
    interval: int = 1
    days_of_week: frozenset[int] | None = None
    day_of_month: int | None = None
    end_date: date | None = None
    schedule_from: ScheduleFrom = ScheduleFrom.DUE_DATE

    def __post_init__(self):
        if not isinstance(self.pattern, Pattern):
            try:
                object.__setattr__(self, "pattern", Pattern(self.pattern))
            except ValueError:
                raise InvalidRuleError("pattern", f"unknown pattern {self.pattern!r}")
        if not isinstance(self.schedule_from, ScheduleFrom):
            try:
                object.__setattr__(self, "schedule_from", ScheduleFrom(self.schedule_from))
            except ValueError:
                raise InvalidRuleError(
                    "schedule_from", f"unknown schedule mode {self.schedule_from!r}"
                )

        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRuleError("interval", "must be an integer")
        if self.interval < 1:
            raise InvalidRuleError("interval", f"must be >= 1, got {self.interval}")

        if self.days_of_week is not None:
            if self.pattern is not Pattern.WEEKLY:
                raise InvalidRuleError("days_of_week", "only allowed for weekly rules")
            days = frozenset(self.days_of_week)
            if not days:
                raise InvalidRuleError("days_of_week", "must not be empty when set")
            bad = sorted(d for d in days if not isinstance(d, int) or not 0 <= d <= 6)
            if bad:
                raise InvalidRuleError("days_of_week", f"weekday indices must be 0-6, got {bad}")
            object.__setattr__(self, "days_of_week", days)

        if self.day_of_month is not None:
            if self.pattern is not Pattern.MONTHLY:
                raise InvalidRuleError("day_of_month", "only allowed for monthly rules")
            if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int):
                raise InvalidRuleError("day_of_month", "must be an integer")
            if not 1 <= self.day_of_month <= 31:
                raise InvalidRuleError(
                    "day_of_month", f"must be between 1 and 31, got {self.day_of_month}"
                )

    def replace(self, **changes) -> "RecurrenceRule":
        """Return a new rule with some fields changed (re-validated)."""
        fields = {
            "pattern": self.pattern,
            "interval": self.interval,
            "days_of_week": self.days_of_week,
            "day_of_month": self.day_of_month,
            "end_date": self.end_date,
            "schedule_from": self.schedule_from,
        }
        fields.update(changes)
        return RecurrenceRule(**fields)

    def describe(self) -> str:
        """Human-readable summary, e.g. 'every 2 weeks on Mon, Wed'."""
        unit = {
            Pattern.DAILY: "day",
            Pattern.WEEKLY: "week",
            Pattern.MONTHLY: "month",
            Pattern.YEARLY: "year",
        }[self.pattern]
        text = f"every {unit}" if self.interval == 1 else f"every {self.interval} {unit}s"
        if self.days_of_week:
            text += " on " + ", ".join(WEEKDAY_NAMES[d] for d in sorted(self.days_of_week))
        if self.day_of_month:
            text += f" on day {self.day_of_month}"
        if self.end_date:
            text += f" until {self.end_date.isoformat()}"
        if self.schedule_from is ScheduleFrom.COMPLETION_DATE:
            text += " (from completion)"
        return text

    def to_api(self) -> dict:
        """Serialize using the dashboard's field names."""
        return {
            "recurringPattern": self.pattern.value,
            "recurringInterval": self.interval,
            "daysOfWeek": sorted(self.days_of_week) if self.days_of_week else None,
            "dayOfMonth": self.day_of_month,
            "recurringEndDate": self.end_date.isoformat() if self.end_date else None,
            "scheduleFrom": self.schedule_from.value,
        }

    @classmethod
    def from_api(cls, data: dict) -> "RecurrenceRule":
        """Create a rule from dashboard fields. Raises InvalidRuleError."""
        end = None
        if data.get("recurringEndDate"):
            try:
                end = date.fromisoformat(str(data["recurringEndDate"])[:10])
            except ValueError:
                raise InvalidRuleError("end_date", f"not a date: {data['recurringEndDate']!r}")

        days = data.get("daysOfWeek")
        interval = data.get("recurringInterval")
        if interval is None:
            interval = 1

        return cls(
            pattern=data.get("recurringPattern") or "daily",
            interval=interval,
            days_of_week=frozenset(days) if days is not None else None,
            day_of_month=data.get("dayOfMonth"),
            end_date=end,
            schedule_from=data.get("scheduleFrom") or "due_date",
        )


def validate_rule(data: dict) -> RecurrenceRule:
    """
    Validate a rule as submitted by the recurring-item editor.

    Returns the constructed rule, or raises InvalidRuleError naming the field.
    """
    return RecurrenceRule.from_api(data)
