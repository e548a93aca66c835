"""Series backfill - create the occurrences a recurring series is missing.

Safe to run repeatedly or concurrently: occurrences are keyed by series id
and anchor date, and a create that hits an existing key counts as present.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from .core.backfill import fixed_cadence_dates, sliding_cadence_date
from .core.recurrence import ScheduleFrom
from .core.schedule import date_key
from .core.series import Series, SeriesKind
from .core.tasks import Task
from .ports.clock import Clock
from .ports.occurrence_store import (
    DuplicateOccurrenceError,
    OccurrenceStore,
    PersistenceError,
)

logger = logging.getLogger(__name__)


@dataclass
class FailedDate:
    """An occurrence that should exist but could not be created."""

    date: date
    reason: str


@dataclass
class BackfillResult:
    """Outcome of one backfill run for one series."""

    series_id: str
    created: list[date] = field(default_factory=list)
    existing: list[date] = field(default_factory=list)
    failed: list[FailedDate] = field(default_factory=list)
    error: str | None = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and self.error is None


@dataclass
class BackfillSummary:
    """Aggregate of a run over every series."""

    results: list[BackfillResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def series_processed(self) -> int:
        return len(self.results)

    @property
    def created(self) -> int:
        return sum(len(r.created) for r in self.results)

    @property
    def failed(self) -> int:
        return sum(len(r.failed) + (1 if r.error else 0) for r in self.results)

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.results)


class BackfillEngine:
    """Reconciles the occurrences a series should have with those that exist."""

    def __init__(self, store: OccurrenceStore, clock: Clock):
        self.store = store
        self.clock = clock

    @property
    def timezone(self) -> str:
        return self.clock.timezone

    def backfill(self, series_id: str, dry_run: bool = False) -> BackfillResult:
        """
        Create every missing occurrence of one series up to now.

        Fixed-cadence series catch up all missed dates. Completion-anchored
        task series get at most the one occurrence following the latest
        completion. Never raises for store failures; see the result.
        """
        result = BackfillResult(series_id=series_id, dry_run=dry_run)

        try:
            series = self.store.get_series(series_id)
        except KeyError:
            result.error = f"Series {series_id} not found"
            return result
        except PersistenceError as e:
            logger.error(f"Cannot load series {series_id}: {e}")
            result.error = str(e)
            return result

        if not series.is_recurring:
            logger.debug(f"Series {series_id} is not recurring, nothing to do")
            return result

        try:
            dates = self._due_dates(series)
        except KeyError:
            logger.warning(f"Series {series_id} disappeared while loading its occurrences")
            result.error = f"Series {series_id} not found"
            return result
        except PersistenceError as e:
            logger.error(f"Cannot load occurrences of series {series_id}: {e}")
            result.error = str(e)
            return result

        self._create_missing(series, dates, result)
        return result

    def backfill_all(self, dry_run: bool = False) -> BackfillSummary:
        """Backfill every recurring series."""
        summary = BackfillSummary()
        try:
            all_series = self.store.list_series()
        except PersistenceError as e:
            logger.error(f"Cannot list series: {e}")
            summary.error = str(e)
            return summary

        for series in all_series:
            if not series.is_recurring:
                summary.skipped.append(series.id)
                continue
            summary.results.append(self.backfill(series.id, dry_run=dry_run))

        logger.info(
            f"Backfill processed {summary.series_processed} series: "
            f"{summary.created} created, {summary.failed} failed, {len(summary.skipped)} skipped"
        )
        return summary

    def _due_dates(self, series: Series) -> list[date]:
        if series.kind is SeriesKind.TASK and series.rule.schedule_from is ScheduleFrom.COMPLETION_DATE:
            occurrences = [o for o in self.store.find_occurrences(series.id) if isinstance(o, Task)]
            nxt = sliding_cadence_date(series, occurrences, self.timezone)
            return [nxt] if nxt else []

        today = date_key(self.clock.now(), self.timezone)
        return fixed_cadence_dates(series, today, self.timezone)

    def _create_missing(self, series: Series, dates: list[date], result: BackfillResult) -> None:
        reached: date | None = None

        for i, d in enumerate(dates):
            try:
                if self.store.exists_for_anchor(series.id, d):
                    result.existing.append(d)
                elif result.dry_run:
                    result.created.append(d)
                else:
                    self.store.create_occurrence(series.build_occurrence(d, self.timezone))
                    result.created.append(d)
                    logger.info(f"Created {series.kind.value} '{series.title}' for {d.isoformat()}")
            except DuplicateOccurrenceError:
                logger.debug(f"Occurrence of {series.id} on {d.isoformat()} created concurrently")
                result.existing.append(d)
            except (PersistenceError, KeyError) as e:
                reason = f"series {series.id} not found" if isinstance(e, KeyError) else str(e)
                logger.error(f"Backfill of {series.id} stopped at {d.isoformat()}: {reason}")
                result.failed.append(FailedDate(d, reason))
                result.failed.extend(FailedDate(rest, f"not attempted: {reason}") for rest in dates[i + 1 :])
                break
            reached = d

        if reached is None or result.dry_run:
            return
        if series.last_generated_anchor and reached <= series.last_generated_anchor:
            return

        try:
            self.store.update_series(series.id, reached)
        except (PersistenceError, KeyError) as e:
            logger.warning(f"Could not record anchor {reached.isoformat()} for {series.id}: {e}")
