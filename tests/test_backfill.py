"""Tests for series backfill planning and the backfill engine."""

from datetime import date, datetime, timedelta
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from cadence.adapters.clock import FixedClock
from cadence.adapters.dashboard_api import DashboardApiStore
from cadence.adapters.json_store import JsonFileStore
from cadence.backfill import BackfillEngine
from cadence.core.backfill import occurrence_anchor, sliding_cadence_date
from cadence.core.recurrence import Pattern, RecurrenceRule, ScheduleFrom
from cadence.core.series import Series
from cadence.core.tasks import Status, Task, stable_series_id
from cadence.ports.occurrence_store import DuplicateOccurrenceError, PersistenceUnavailable

TZ = "America/New_York"


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "cadence.json")


@pytest.fixture
def clock():
    # Ten weeks after the first occurrence
    return FixedClock(datetime(2025, 3, 17, 12, 0), TZ)


@pytest.fixture
def engine(store, clock):
    return BackfillEngine(store, clock)


def series_record(**overrides):
    record = {
        "id": "s1",
        "title": "Biweekly sync notes",
        "start": "2025-01-06T09:00:00-05:00",
        "recurringPattern": "weekly",
        "recurringInterval": 2,
        "daysOfWeek": [1],
    }
    record.update(overrides)
    return record


def make_series(**kwargs):
    kwargs.setdefault("id", "s1")
    kwargs.setdefault("title", "Daily check")
    kwargs.setdefault("rule", RecurrenceRule(Pattern.DAILY))
    kwargs.setdefault("start", datetime(2025, 1, 6, 9, 0, tzinfo=ZoneInfo(TZ)))
    return Series(**kwargs)


class TestOccurrenceAnchor:
    def test_prefers_instance_date(self):
        task = Task(id="1", title="x", instance_date=date(2025, 1, 6), due_date=datetime(2025, 1, 9, 12, 0))
        assert occurrence_anchor(task, TZ) == date(2025, 1, 6)

    def test_falls_back_to_due_date(self):
        task = Task(id="1", title="x", due_date=datetime(2025, 1, 9, 12, 0))
        assert occurrence_anchor(task, TZ) == date(2025, 1, 9)

    def test_none(self):
        assert occurrence_anchor(Task(id="1", title="x"), TZ) is None


class TestSlidingCadence:
    @pytest.fixture
    def series(self):
        return make_series(rule=RecurrenceRule(Pattern.WEEKLY, schedule_from=ScheduleFrom.COMPLETION_DATE))

    def test_nothing_completed(self, series):
        open_task = Task(id="1", title="x", instance_date=date(2025, 1, 6))
        assert sliding_cadence_date(series, [open_task], TZ) is None

    def test_anchors_on_completion_date(self, series):
        done = Task(
            id="1",
            title="x",
            status=Status.COMPLETED,
            instance_date=date(2025, 1, 6),
            completed_at=datetime(2025, 1, 10, 15, 0, tzinfo=ZoneInfo(TZ)),
        )
        assert sliding_cadence_date(series, [done], TZ) == date(2025, 1, 17)

    def test_newer_occurrence_already_exists(self, series):
        done = Task(
            id="1",
            title="x",
            status=Status.COMPLETED,
            instance_date=date(2025, 1, 6),
            completed_at=datetime(2025, 1, 10, 15, 0, tzinfo=ZoneInfo(TZ)),
        )
        following = Task(id="2", title="x", instance_date=date(2025, 1, 17))
        assert sliding_cadence_date(series, [done, following], TZ) is None


class TestBackfillFixedCadence:
    def test_catches_up_every_missed_occurrence(self, store, engine):
        store.add_series(series_record())

        result = engine.backfill("s1")

        assert result.ok
        assert result.created == [
            date(2025, 1, 20),
            date(2025, 2, 3),
            date(2025, 2, 17),
            date(2025, 3, 3),
            date(2025, 3, 17),
        ]
        assert len(store.find_occurrences("s1")) == 5
        assert store.get_series("s1").last_generated_anchor == date(2025, 3, 17)

    def test_second_run_creates_nothing(self, store, engine):
        store.add_series(series_record())
        engine.backfill("s1")

        result = engine.backfill("s1")

        assert result.ok
        assert result.created == []
        assert len(store.find_occurrences("s1")) == 5

    def test_existing_occurrences_are_not_duplicated(self, store, engine):
        store.add_series(series_record())
        engine.backfill("s1")
        # Lose the recorded anchor: every date is recomputed
        store.update_series("s1", date(2025, 1, 6))

        result = engine.backfill("s1")

        assert result.created == []
        assert len(result.existing) == 5
        assert len(store.find_occurrences("s1")) == 5

    def test_later_runs_pick_up_new_dates(self, store, engine, clock):
        store.add_series(series_record())
        engine.backfill("s1")

        clock.advance(weeks=2)
        result = engine.backfill("s1")

        assert result.created == [date(2025, 3, 31)]

    def test_occurrences_are_due_end_of_day(self, store, engine):
        store.add_series(series_record())
        engine.backfill("s1")

        task = next(t for t in store.list_tasks() if t.instance_date == date(2025, 1, 20))
        assert task.status is Status.TODO
        assert task.due_date == datetime(2025, 1, 20, 23, 59, 59, 999999, tzinfo=ZoneInfo(TZ))

    def test_respects_end_date(self, store, engine):
        store.add_series(series_record(recurringEndDate="2025-02-10"))
        assert engine.backfill("s1").created == [date(2025, 1, 20), date(2025, 2, 3)]

    def test_event_series(self, store, engine):
        store.add_series(
            series_record(
                kind="event",
                start="2025-03-10T09:30:00-04:00",
                recurringPattern="daily",
                recurringInterval=1,
                daysOfWeek=None,
                durationMinutes=30,
            )
        )

        result = engine.backfill("s1")

        assert result.created == [date(2025, 3, 10) + timedelta(days=n) for n in range(1, 8)]
        events = store.list_events()
        assert len(events) == 7
        assert all(e.duration_minutes() == 30 for e in events)
        assert store.list_tasks() == []

    def test_dry_run_writes_nothing(self, store, engine):
        store.add_series(series_record())

        result = engine.backfill("s1", dry_run=True)

        assert result.dry_run
        assert len(result.created) == 5
        assert store.find_occurrences("s1") == []
        assert store.get_series("s1").last_generated_anchor is None

    def test_unknown_series(self, engine):
        result = engine.backfill("nope")
        assert not result.ok
        assert result.error == "Series nope not found"

    def test_paused_series_is_noop(self, store, engine):
        store.add_series(series_record(isRecurring=False))
        result = engine.backfill("s1")
        assert result.ok
        assert result.created == []


class TestBackfillCompletionMode:
    @pytest.fixture
    def series_id(self, store):
        store.add_series(
            series_record(
                recurringPattern="weekly",
                recurringInterval=1,
                daysOfWeek=None,
                scheduleFrom="completion_date",
            )
        )
        return "s1"

    def test_waits_for_completion(self, store, engine, series_id):
        store.add_task({"title": "Biweekly sync notes", "recurrenceSeriesId": series_id,
                        "recurrenceInstanceDate": "2025-01-06"})
        assert engine.backfill(series_id).created == []

    def test_creates_one_after_completion(self, store, engine, series_id):
        store.add_task(
            {
                "title": "Biweekly sync notes",
                "status": "completed",
                "completedAt": "2025-03-14T10:00:00-04:00",
                "recurrenceSeriesId": series_id,
                "recurrenceInstanceDate": "2025-01-06",
            }
        )

        first = engine.backfill(series_id)
        second = engine.backfill(series_id)

        assert first.created == [date(2025, 3, 21)]
        assert second.created == []
        assert len(store.find_occurrences(series_id)) == 2


class TestBackfillFailures:
    @pytest.fixture
    def mock_store(self):
        store = MagicMock()
        store.get_series.return_value = make_series()
        store.exists_for_anchor.return_value = False
        return store

    @pytest.fixture
    def short_clock(self):
        return FixedClock(datetime(2025, 1, 10, 12, 0), TZ)

    def test_partial_failure_reports_remaining_dates(self, mock_store, short_clock):
        mock_store.create_occurrence.side_effect = [MagicMock(), PersistenceUnavailable("store down")]

        result = BackfillEngine(mock_store, short_clock).backfill("s1")

        assert not result.ok
        assert result.created == [date(2025, 1, 7)]
        assert [f.date for f in result.failed] == [date(2025, 1, 8), date(2025, 1, 9), date(2025, 1, 10)]
        assert result.failed[0].reason == "store down"
        assert result.failed[1].reason.startswith("not attempted")
        mock_store.update_series.assert_called_once_with("s1", date(2025, 1, 7))

    def test_duplicate_counts_as_present(self, mock_store, short_clock):
        mock_store.create_occurrence.side_effect = [
            DuplicateOccurrenceError("s1", date(2025, 1, 7)),
            MagicMock(),
            MagicMock(),
            MagicMock(),
        ]

        result = BackfillEngine(mock_store, short_clock).backfill("s1")

        assert result.ok
        assert result.existing == [date(2025, 1, 7)]
        assert len(result.created) == 3

    def test_series_lookup_failure(self, mock_store, short_clock):
        mock_store.get_series.side_effect = PersistenceUnavailable("timeout")
        result = BackfillEngine(mock_store, short_clock).backfill("s1")
        assert result.error == "timeout"
        mock_store.create_occurrence.assert_not_called()

    def test_anchor_update_failure_is_not_fatal(self, mock_store, short_clock):
        mock_store.update_series.side_effect = PersistenceUnavailable("read only")
        result = BackfillEngine(mock_store, short_clock).backfill("s1")
        assert result.ok
        assert len(result.created) == 4


class TestBackfillAll:
    def test_aggregates(self, store, engine):
        store.add_series(series_record(id="a"))
        store.add_series(series_record(id="b", recurringPattern="monthly", daysOfWeek=None,
                                       recurringInterval=1))
        store.add_series(series_record(id="c", isRecurring=False))

        summary = engine.backfill_all()

        assert summary.ok
        assert summary.series_processed == 2
        assert summary.skipped == ["c"]
        assert summary.created == 5 + 2

    def test_dry_run(self, store, engine):
        store.add_series(series_record(id="a"))
        summary = engine.backfill_all(dry_run=True)
        assert summary.created == 5
        assert store.find_occurrences("a") == []

    def test_list_failure(self, clock):
        mock_store = MagicMock()
        mock_store.list_series.side_effect = PersistenceUnavailable("down")
        summary = BackfillEngine(mock_store, clock).backfill_all()
        assert not summary.ok
        assert summary.error == "down"


class TestSeriesDeletedDuringRun:
    """The dashboard answers 404 once a series is deleted mid-run."""

    @staticmethod
    def dashboard(series):
        def request(method, url, **kwargs):
            resp = MagicMock()
            if url.endswith("/api/recurring-series/s1"):
                resp.status_code = 200
                resp.content = b"{}"
                resp.json.return_value = series
            else:
                resp.status_code = 404
                resp.text = "Not Found"
            return resp

        session = MagicMock()
        session.headers = {}
        session.request.side_effect = request
        return DashboardApiStore("https://dash.example.com", session=session)

    def test_completion_mode_reports_missing_series(self, clock):
        api = self.dashboard(series_record(scheduleFrom="completion_date", daysOfWeek=None))

        result = BackfillEngine(api, clock).backfill("s1")

        assert not result.ok
        assert result.error == "Series s1 not found"

    def test_fixed_cadence_fails_remaining_dates(self, clock):
        api = self.dashboard(series_record())

        result = BackfillEngine(api, clock).backfill("s1")

        assert not result.ok
        assert result.created == []
        assert result.failed[0].reason == "series s1 not found"
        assert result.failed[1].reason == "not attempted: series s1 not found"
        assert len(result.failed) == 5

    def test_other_series_still_run(self, store, clock):
        store.add_series(series_record(id="gone"))
        store.add_series(series_record(id="kept"))

        def exists_for_anchor(series_id, anchor):
            if series_id == "gone":
                raise KeyError(f"Series {series_id} not found")
            return store.exists_for_anchor(series_id, anchor)

        flaky = MagicMock(wraps=store)
        flaky.exists_for_anchor.side_effect = exists_for_anchor

        summary = BackfillEngine(flaky, clock).backfill_all()

        assert not summary.ok
        assert summary.created == 5
        assert len(store.find_occurrences("kept")) == 5
        assert store.find_occurrences("gone") == []


class TestLegacyRecurringTasks:
    @pytest.fixture
    def record(self):
        return {
            "id": "rent",
            "title": "Pay rent",
            "isRecurring": True,
            "recurringPattern": "monthly",
            "dueDate": "2025-01-01T23:59:59-05:00",
        }

    def test_adopted_as_a_series(self, store, engine, record):
        store.add_task(record)
        series_id = stable_series_id(record)

        summary = engine.backfill_all()

        assert summary.ok
        assert summary.created == 2
        created = sorted(t.instance_date for t in store.find_occurrences(series_id) if t.instance_date)
        assert created == [date(2025, 2, 1), date(2025, 3, 1)]
        assert store.get_series(series_id).last_generated_anchor == date(2025, 3, 1)

    def test_second_run_creates_nothing(self, store, engine, record):
        store.add_task(record)
        engine.backfill_all()

        summary = engine.backfill_all()

        assert summary.created == 0
        assert len(store.find_occurrences(stable_series_id(record))) == 3
        assert len(store.list_series()) == 1
