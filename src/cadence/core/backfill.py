"""Backfill planning - which occurrences a series is missing. Pure, no I/O."""

from datetime import date

from .schedule import DEFAULT_TIMEZONE, date_key, generate_up_to, next_occurrence
from .series import Series
from .tasks import Task, latest_completed


def occurrence_anchor(task: Task, timezone: str = DEFAULT_TIMEZONE) -> date | None:
    """Anchor date an occurrence was generated for, falling back to its due date."""
    if task.instance_date:
        return task.instance_date
    if task.due_date:
        return date_key(task.due_date, timezone)
    return None


def fixed_cadence_dates(
    series: Series,
    today: date,
    timezone: str = DEFAULT_TIMEZONE,
) -> list[date]:
    """
    Every scheduled date after the series' last generated anchor, up to today.

    Catches up all missed occurrences, not just the next one.
    """
    return generate_up_to(series.rule, series.anchor(timezone), today, origin=series.origin(timezone))


def sliding_cadence_date(
    series: Series,
    occurrences: list[Task],
    timezone: str = DEFAULT_TIMEZONE,
) -> date | None:
    """
    The single occurrence that follows the most recent completion.

    Returns None when nothing has been completed yet, when an occurrence
    newer than the completed one already exists, or when the rule has ended.
    """
    done = latest_completed(occurrences)
    if done is None:
        return None

    done_anchor = occurrence_anchor(done, timezone)
    if done_anchor is not None:
        for t in occurrences:
            anchor = occurrence_anchor(t, timezone)
            if anchor is not None and anchor > done_anchor:
                return None

    return next_occurrence(series.rule, date_key(done.completed_at, timezone))
