"""
Unit tests for the cron expression builder.
"""

import pytest

from mediaqueue.constants import DayOfWeek
from mediaqueue.exceptions import CronRangeError
from mediaqueue.queue.cron import CronExpressionBuilder


@pytest.fixture
def builder() -> CronExpressionBuilder:
    return CronExpressionBuilder()


class TestMinuteFields:
    """Tests for minute setters."""

    def test_default_is_all_wildcards(self, builder: CronExpressionBuilder):
        """A fresh builder matches every minute."""
        assert builder.build() == "* * * * *"

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(1, "*/1 * * * *"), (15, "*/15 * * * *"), (59, "*/59 * * * *")],
    )
    def test_every_minutes(self, builder: CronExpressionBuilder, minutes: int, expected: str):
        """Test step expressions for minutes."""
        assert builder.every_minutes(minutes).build() == expected

    @pytest.mark.parametrize("minutes", [0, 60, -1])
    def test_every_minutes_out_of_range(self, builder: CronExpressionBuilder, minutes: int):
        """Test that minute steps outside 1-59 are rejected."""
        with pytest.raises(CronRangeError):
            builder.every_minutes(minutes)

    def test_at_minutes_list(self, builder: CronExpressionBuilder):
        """Test a list of minutes."""
        assert builder.at_minutes(0, 15, 30, 45).build() == "0,15,30,45 * * * *"

    def test_at_minutes_rejects_any_bad_value(self, builder: CronExpressionBuilder):
        """Test that one bad entry rejects the whole list."""
        with pytest.raises(CronRangeError):
            builder.at_minutes(0, 60, 30)

    def test_minute_range(self, builder: CronExpressionBuilder):
        """Test minute ranges."""
        assert builder.minute_range(0, 30).build() == "0-30 * * * *"

    @pytest.mark.parametrize(("start", "end"), [(30, 30), (40, 10), (-1, 10), (0, 60)])
    def test_minute_range_invalid(self, builder: CronExpressionBuilder, start: int, end: int):
        """Test that empty, reversed and out-of-bounds ranges are rejected."""
        with pytest.raises(CronRangeError):
            builder.minute_range(start, end)


class TestHourFields:
    """Tests for hour setters, which also pin the minute."""

    def test_every_hour(self, builder: CronExpressionBuilder):
        assert builder.every_hour().build() == "0 * * * *"

    def test_every_hours(self, builder: CronExpressionBuilder):
        assert builder.every_hours(6).build() == "0 */6 * * *"

    def test_at_hour_overrides_minute(self, builder: CronExpressionBuilder):
        """Test that setting the hour resets a previously chosen minute."""
        assert builder.at_minute(30).at_hour(14).build() == "0 14 * * *"

    def test_at_hours(self, builder: CronExpressionBuilder):
        assert builder.at_hours(9, 12, 18).build() == "0 9,12,18 * * *"

    def test_hour_range(self, builder: CronExpressionBuilder):
        assert builder.hour_range(9, 17).build() == "0 9-17 * * *"

    @pytest.mark.parametrize("hour", [-1, 24])
    def test_at_hour_out_of_range(self, builder: CronExpressionBuilder, hour: int):
        with pytest.raises(CronRangeError):
            builder.at_hour(hour)

    def test_every_hours_zero_rejected(self, builder: CronExpressionBuilder):
        with pytest.raises(CronRangeError):
            builder.every_hours(0)


class TestDayAndMonthFields:
    """Tests for day-of-month and month setters."""

    def test_on_day(self, builder: CronExpressionBuilder):
        assert builder.on_day(15).build() == "* * 15 * *"

    def test_on_days_and_in_months(self, builder: CronExpressionBuilder):
        assert builder.on_days(1, 15).in_months(1, 7).build() == "* * 1,15 1,7 *"

    def test_every_nth_day(self, builder: CronExpressionBuilder):
        assert builder.every_nth_day(3).build() == "0 0 */3 * *"

    def test_last_day_of_month(self, builder: CronExpressionBuilder):
        assert builder.last_day_of_month().build() == "0 0 L * *"

    def test_every_nth_month(self, builder: CronExpressionBuilder):
        assert builder.every_nth_month(3).build() == "0 0 1 */3 *"

    def test_day_and_month_ranges(self, builder: CronExpressionBuilder):
        assert builder.day_range(1, 7).month_range(6, 8).build() == "* * 1-7 6-8 *"

    @pytest.mark.parametrize("day", [0, 32])
    def test_on_day_out_of_range(self, builder: CronExpressionBuilder, day: int):
        with pytest.raises(CronRangeError):
            builder.on_day(day)

    @pytest.mark.parametrize("month", [0, 13])
    def test_in_month_out_of_range(self, builder: CronExpressionBuilder, month: int):
        with pytest.raises(CronRangeError):
            builder.in_month(month)


class TestDayOfWeekFields:
    """Tests for day-of-week setters."""

    def test_on_day_of_week(self, builder: CronExpressionBuilder):
        assert builder.on_day_of_week(DayOfWeek.FRIDAY).build() == "* * * * 5"

    def test_on_days_of_week(self, builder: CronExpressionBuilder):
        days = builder.on_days_of_week(DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY)
        assert days.build() == "* * * * 1,3"

    def test_weekdays(self, builder: CronExpressionBuilder):
        assert builder.weekdays().build() == "0 0 * * 1-5"

    def test_weekends(self, builder: CronExpressionBuilder):
        assert builder.weekends().build() == "0 0 * * 0,6"

    def test_on_nth_day_of_week(self, builder: CronExpressionBuilder):
        """Test the second Tuesday of the month."""
        assert builder.on_nth_day_of_week(2, DayOfWeek.TUESDAY).build() == "0 0 * * 2#2"

    @pytest.mark.parametrize("nth", [0, 6])
    def test_on_nth_day_of_week_out_of_range(self, builder: CronExpressionBuilder, nth: int):
        with pytest.raises(CronRangeError):
            builder.on_nth_day_of_week(nth, DayOfWeek.MONDAY)

    def test_last_day_of_week(self, builder: CronExpressionBuilder):
        assert builder.last_day_of_week(DayOfWeek.FRIDAY).build() == "0 0 * * 5L"

    def test_invalid_day_of_week_number(self, builder: CronExpressionBuilder):
        with pytest.raises(CronRangeError):
            builder.on_day_of_week(7)


class TestShortcuts:
    """Tests for composite shortcuts, build and reset."""

    def test_daily(self, builder: CronExpressionBuilder):
        assert builder.daily(3, 30).build() == "30 3 * * *"

    def test_weekly(self, builder: CronExpressionBuilder):
        assert builder.weekly(DayOfWeek.SUNDAY, hour=4).build() == "0 4 * * 0"

    def test_monthly(self, builder: CronExpressionBuilder):
        assert builder.monthly(1, 2, 15).build() == "15 2 1 * *"

    def test_yearly(self, builder: CronExpressionBuilder):
        assert builder.yearly(12, 25, 8).build() == "0 8 25 12 *"

    def test_hourly(self, builder: CronExpressionBuilder):
        assert builder.hourly(45).build() == "45 * * * *"

    def test_shortcut_overwrites_every_field(self, builder: CronExpressionBuilder):
        """Test that a shortcut leaves nothing from earlier calls behind."""
        builder.on_days(1, 2).in_month(5).on_day_of_week(DayOfWeek.MONDAY)
        assert builder.daily().build() == "0 0 * * *"

    @pytest.mark.parametrize(
        "call",
        [
            lambda b: b.daily(24, 0),
            lambda b: b.daily(0, 60),
            lambda b: b.monthly(32),
            lambda b: b.yearly(13, 1),
            lambda b: b.hourly(-1),
        ],
    )
    def test_shortcuts_validate(self, builder: CronExpressionBuilder, call):
        with pytest.raises(CronRangeError):
            call(builder)

    def test_range_error_is_value_error(self, builder: CronExpressionBuilder):
        """Test that callers can catch range errors as ValueError."""
        with pytest.raises(ValueError):
            builder.at_minute(99)

    def test_str_matches_build(self, builder: CronExpressionBuilder):
        builder.every_hours(2)
        assert str(builder) == builder.build() == "0 */2 * * *"

    def test_reset(self, builder: CronExpressionBuilder):
        """Test that reset returns every field to the wildcard."""
        builder.yearly(1, 1, 1, 1)
        assert builder.reset().build() == "* * * * *"

    def test_failed_setter_leaves_builder_unchanged(self, builder: CronExpressionBuilder):
        builder.at_hour(5)
        with pytest.raises(CronRangeError):
            builder.at_hours(1, 25)
        assert builder.build() == "0 5 * * *"
