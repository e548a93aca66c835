"""Tests for recurrence rule validation."""

from datetime import date

import pytest

from cadence.core.recurrence import (
    InvalidRuleError,
    Pattern,
    RecurrenceRule,
    ScheduleFrom,
    validate_rule,
)


class TestRecurrenceRule:
    def test_defaults(self):
        rule = RecurrenceRule(Pattern.DAILY)
        assert rule.interval == 1
        assert rule.days_of_week is None
        assert rule.schedule_from is ScheduleFrom.DUE_DATE

    def test_coerces_strings(self):
        rule = RecurrenceRule("weekly", days_of_week={1, 3}, schedule_from="completion_date")
        assert rule.pattern is Pattern.WEEKLY
        assert rule.schedule_from is ScheduleFrom.COMPLETION_DATE
        assert rule.days_of_week == frozenset({1, 3})

    @pytest.mark.parametrize("interval", [0, -1])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.DAILY, interval=interval)
        assert exc.value.field == "interval"

    def test_interval_must_be_integer(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.DAILY, interval=1.5)
        assert exc.value.field == "interval"

    def test_unknown_pattern(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule("hourly")
        assert exc.value.field == "pattern"

    def test_days_of_week_only_for_weekly(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.DAILY, days_of_week={1})
        assert exc.value.field == "days_of_week"

    def test_days_of_week_not_empty(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.WEEKLY, days_of_week=set())
        assert exc.value.field == "days_of_week"

    def test_days_of_week_range(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.WEEKLY, days_of_week={1, 7})
        assert exc.value.field == "days_of_week"
        assert "7" in str(exc.value)

    def test_day_of_month_only_for_monthly(self):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.WEEKLY, day_of_month=5)
        assert exc.value.field == "day_of_month"

    @pytest.mark.parametrize("day", [0, 32])
    def test_day_of_month_range(self, day):
        with pytest.raises(InvalidRuleError) as exc:
            RecurrenceRule(Pattern.MONTHLY, day_of_month=day)
        assert exc.value.field == "day_of_month"

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            RecurrenceRule(Pattern.DAILY, interval=0)

    def test_replace_revalidates(self):
        rule = RecurrenceRule(Pattern.WEEKLY, days_of_week={1})
        assert rule.replace(interval=2).interval == 2
        with pytest.raises(InvalidRuleError):
            rule.replace(pattern=Pattern.DAILY)


class TestDescribe:
    def test_simple(self):
        assert RecurrenceRule(Pattern.DAILY).describe() == "every day"

    def test_weekly_days(self):
        rule = RecurrenceRule(Pattern.WEEKLY, interval=2, days_of_week={5, 1})
        assert rule.describe() == "every 2 weeks on Mon, Fri"

    def test_end_and_completion(self):
        rule = RecurrenceRule(
            Pattern.MONTHLY,
            day_of_month=15,
            end_date=date(2025, 12, 31),
            schedule_from=ScheduleFrom.COMPLETION_DATE,
        )
        assert rule.describe() == "every month on day 15 until 2025-12-31 (from completion)"


class TestValidateRule:
    def test_valid_payload(self):
        rule = validate_rule(
            {
                "recurringPattern": "weekly",
                "recurringInterval": 2,
                "daysOfWeek": [1, 3, 5],
                "recurringEndDate": "2025-06-30",
            }
        )
        assert rule.pattern is Pattern.WEEKLY
        assert rule.interval == 2
        assert rule.days_of_week == frozenset({1, 3, 5})
        assert rule.end_date == date(2025, 6, 30)

    def test_missing_fields_default(self):
        rule = validate_rule({})
        assert rule.pattern is Pattern.DAILY
        assert rule.interval == 1
        assert rule.schedule_from is ScheduleFrom.DUE_DATE

    def test_bad_end_date(self):
        with pytest.raises(InvalidRuleError) as exc:
            validate_rule({"recurringPattern": "daily", "recurringEndDate": "next year"})
        assert exc.value.field == "end_date"

    def test_bad_schedule_from(self):
        with pytest.raises(InvalidRuleError) as exc:
            validate_rule({"recurringPattern": "daily", "scheduleFrom": "whenever"})
        assert exc.value.field == "schedule_from"

    def test_api_round_trip(self):
        rule = RecurrenceRule(Pattern.MONTHLY, interval=3, day_of_month=31)
        assert validate_rule(rule.to_api()) == rule
