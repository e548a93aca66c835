"""Occurrence scheduling - pure date arithmetic over recurrence rules."""

import calendar
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .recurrence import Pattern, RecurrenceRule

DEFAULT_TIMEZONE = "America/New_York"


def date_key(instant: datetime, timezone: str = DEFAULT_TIMEZONE) -> date:
    """
    Calendar date of an instant in the reporting timezone.

    Naive datetimes are taken to already be in that timezone.
    """
    if instant.tzinfo is None:
        return instant.date()
    return instant.astimezone(ZoneInfo(timezone)).date()


def end_of_day(day: date, timezone: str = DEFAULT_TIMEZONE) -> datetime:
    """Last instant of a calendar date in the reporting timezone."""
    return datetime.combine(day, time.max, tzinfo=ZoneInfo(timezone))


def at_time(day: date, clock_time: time, timezone: str = DEFAULT_TIMEZONE) -> datetime:
    """A wall-clock time on a calendar date in the reporting timezone."""
    return datetime.combine(day, clock_time.replace(tzinfo=None), tzinfo=ZoneInfo(timezone))


def sunday_index(d: date) -> int:
    """Weekday index with 0=Sunday..6=Saturday."""
    return (d.weekday() + 1) % 7


def _clamped(year: int, month: int, day: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def _add_months(d: date, months: int) -> tuple[int, int]:
    total = d.year * 12 + (d.month - 1) + months
    return total // 12, total % 12 + 1


def _next_weekday_match(days: frozenset[int], interval: int, anchor: date) -> date:
    idx = sunday_index(anchor)
    later = sorted(d for d in days if d > idx)
    if later:
        return anchor + timedelta(days=later[0] - idx)
    # Past the last matching weekday: skip to the start of the week that is
    # `interval` weeks after this one
    next_week = anchor + timedelta(days=7 - idx)
    week_start = next_week + timedelta(weeks=interval - 1)
    return week_start + timedelta(days=min(days))


def next_occurrence(
    rule: RecurrenceRule,
    anchor: date,
    origin: date | None = None,
) -> date | None:
    """
    Next occurrence strictly after `anchor`, or None if past the end date.

    `origin` is the series' first anchor. Monthly rules without a day of
    month and yearly rules take their day from it, so a clamped date
    (Jan 31 -> Feb 28) does not drag later occurrences to the 28th.

    Pure function - no I/O.
    """
    origin = origin or anchor

    if rule.pattern is Pattern.DAILY:
        result = anchor + timedelta(days=rule.interval)
    elif rule.pattern is Pattern.WEEKLY:
        if rule.days_of_week:
            result = _next_weekday_match(rule.days_of_week, rule.interval, anchor)
        else:
            result = anchor + timedelta(weeks=rule.interval)
    elif rule.pattern is Pattern.MONTHLY:
        target_day = rule.day_of_month or origin.day
        year, month = _add_months(anchor, rule.interval)
        result = _clamped(year, month, target_day)
    else:
        result = _clamped(anchor.year + rule.interval, origin.month, origin.day)

    if rule.end_date and result > rule.end_date:
        return None
    return result


def generate_up_to(
    rule: RecurrenceRule,
    anchor: date,
    horizon: date,
    origin: date | None = None,
    limit: int | None = None,
) -> list[date]:
    """
    All occurrences after `anchor` up to and including `horizon`.

    The result is strictly increasing. Stops early at the rule's end date
    or after `limit` dates.
    """
    origin = origin or anchor
    dates: list[date] = []
    current = anchor

    while limit is None or len(dates) < limit:
        nxt = next_occurrence(rule, current, origin)
        if nxt is None or nxt > horizon:
            break
        dates.append(nxt)
        current = nxt

    return dates


def preview_occurrences(rule: RecurrenceRule, anchor: date, count: int) -> list[date]:
    """The next `count` dates after `anchor`, for the recurring-item editor."""
    dates: list[date] = []
    current = anchor
    while len(dates) < count:
        nxt = next_occurrence(rule, current, anchor)
        if nxt is None:
            break
        dates.append(nxt)
        current = nxt
    return dates
