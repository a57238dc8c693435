"""
Fluent builder for five-field cron expressions.

    CronExpressionBuilder().every_hours(6).build()   # "0 */6 * * *"
    CronExpressionBuilder().weekly(DayOfWeek.MONDAY, hour=3).build()   # "0 3 * * 1"

Fields are ``minute hour day-of-month month day-of-week`` and each starts
as ``*``. The builder only produces strings; scheduling and next-run
evaluation belong to whoever consumes the cron rows.
"""

from mediaqueue.constants import DayOfWeek
from mediaqueue.exceptions import CronRangeError

WILDCARD = "*"

MINUTE_BOUNDS = (0, 59)
HOUR_BOUNDS = (0, 23)
DAY_BOUNDS = (1, 31)
MONTH_BOUNDS = (1, 12)


def _check(field: str, value: int, low: int, high: int, label: str) -> None:
    if value < low or value > high:
        raise CronRangeError(field, f"{label} must be between {low} and {high}")


def _check_all(field: str, values: tuple[int, ...], low: int, high: int, label: str) -> None:
    for value in values:
        _check(field, value, low, high, label)


def _check_range(field: str, start: int, end: int, low: int, high: int) -> None:
    if start < low or start > high or end < low or end > high or start >= end:
        raise CronRangeError(field, f"Invalid {field} range")


def _join(values: tuple[int, ...]) -> str:
    return ",".join(str(int(v)) for v in values)


def _day_of_week(value: int) -> int:
    try:
        return int(DayOfWeek(value))
    except ValueError as e:
        raise CronRangeError("day_of_week", "Day of week must be between 0 and 6") from e


class CronExpressionBuilder:
    """
    Fluent cron expression builder.

    Every setter returns the builder. Hour-level setters also pin the
    minute to ``0``, and day/month/week shortcuts pin minute and hour to
    midnight, so that e.g. ``every_hours(2)`` means "on the hour".

    Out-of-range values raise ``CronRangeError``.
    """

    def __init__(self) -> None:
        self.reset()

    # Minute

    def every_minute(self) -> "CronExpressionBuilder":
        self._minute = WILDCARD
        return self

    def every_minutes(self, minutes: int) -> "CronExpressionBuilder":
        _check("minute", minutes, 1, 59, "Minutes")
        self._minute = f"*/{minutes}"
        return self

    def at_minute(self, minute: int) -> "CronExpressionBuilder":
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        self._minute = str(minute)
        return self

    def at_minutes(self, *minutes: int) -> "CronExpressionBuilder":
        _check_all("minute", minutes, *MINUTE_BOUNDS, "Minutes")
        self._minute = _join(minutes)
        return self

    def minute_range(self, start: int, end: int) -> "CronExpressionBuilder":
        _check_range("minute", start, end, *MINUTE_BOUNDS)
        self._minute = f"{start}-{end}"
        return self

    # Hour

    def every_hour(self) -> "CronExpressionBuilder":
        self._minute = "0"
        self._hour = WILDCARD
        return self

    def every_hours(self, hours: int) -> "CronExpressionBuilder":
        _check("hour", hours, 1, 23, "Hours")
        self._minute = "0"
        self._hour = f"*/{hours}"
        return self

    def at_hour(self, hour: int) -> "CronExpressionBuilder":
        _check("hour", hour, *HOUR_BOUNDS, "Hour")
        self._minute = "0"
        self._hour = str(hour)
        return self

    def at_hours(self, *hours: int) -> "CronExpressionBuilder":
        _check_all("hour", hours, *HOUR_BOUNDS, "Hours")
        self._minute = "0"
        self._hour = _join(hours)
        return self

    def hour_range(self, start: int, end: int) -> "CronExpressionBuilder":
        _check_range("hour", start, end, *HOUR_BOUNDS)
        self._minute = "0"
        self._hour = f"{start}-{end}"
        return self

    # Day of month

    def every_day(self) -> "CronExpressionBuilder":
        self._day_of_month = WILDCARD
        return self

    def on_day(self, day: int) -> "CronExpressionBuilder":
        _check("day", day, *DAY_BOUNDS, "Day")
        self._day_of_month = str(day)
        return self

    def on_days(self, *days: int) -> "CronExpressionBuilder":
        _check_all("day", days, *DAY_BOUNDS, "Days")
        self._day_of_month = _join(days)
        return self

    def day_range(self, start: int, end: int) -> "CronExpressionBuilder":
        _check_range("day", start, end, *DAY_BOUNDS)
        self._day_of_month = f"{start}-{end}"
        return self

    def every_nth_day(self, n: int) -> "CronExpressionBuilder":
        _check("day", n, *DAY_BOUNDS, "N")
        self._minute = "0"
        self._hour = "0"
        self._day_of_month = f"*/{n}"
        return self

    def last_day_of_month(self) -> "CronExpressionBuilder":
        self._minute = "0"
        self._hour = "0"
        self._day_of_month = "L"
        return self

    # Month

    def every_month(self) -> "CronExpressionBuilder":
        self._month = WILDCARD
        return self

    def in_month(self, month: int) -> "CronExpressionBuilder":
        _check("month", month, *MONTH_BOUNDS, "Month")
        self._month = str(month)
        return self

    def in_months(self, *months: int) -> "CronExpressionBuilder":
        _check_all("month", months, *MONTH_BOUNDS, "Months")
        self._month = _join(months)
        return self

    def month_range(self, start: int, end: int) -> "CronExpressionBuilder":
        _check_range("month", start, end, *MONTH_BOUNDS)
        self._month = f"{start}-{end}"
        return self

    def every_nth_month(self, n: int) -> "CronExpressionBuilder":
        _check("month", n, *MONTH_BOUNDS, "N")
        self._minute = "0"
        self._hour = "0"
        self._day_of_month = "1"
        self._month = f"*/{n}"
        return self

    # Day of week

    def any_day_of_week(self) -> "CronExpressionBuilder":
        self._day_of_week = WILDCARD
        return self

    def on_day_of_week(self, day_of_week: DayOfWeek) -> "CronExpressionBuilder":
        self._day_of_week = str(_day_of_week(day_of_week))
        return self

    def on_days_of_week(self, *days_of_week: DayOfWeek) -> "CronExpressionBuilder":
        self._day_of_week = _join(tuple(_day_of_week(d) for d in days_of_week))
        return self

    def weekdays(self) -> "CronExpressionBuilder":
        self._at_midnight()
        self._day_of_week = "1-5"
        return self

    def weekends(self) -> "CronExpressionBuilder":
        self._at_midnight()
        self._day_of_week = "0,6"
        return self

    def on_nth_day_of_week(self, nth: int, day_of_week: DayOfWeek) -> "CronExpressionBuilder":
        """Schedule on e.g. the 2nd Tuesday of the month (``2#2``)."""
        _check("day_of_week", nth, 1, 5, "Nth")
        day = _day_of_week(day_of_week)
        self._at_midnight()
        self._day_of_week = f"{day}#{nth}"
        return self

    def last_day_of_week(self, day_of_week: DayOfWeek) -> "CronExpressionBuilder":
        """Schedule on e.g. the last Friday of the month (``5L``)."""
        day = _day_of_week(day_of_week)
        self._at_midnight()
        self._day_of_week = f"{day}L"
        return self

    # Common patterns

    def daily(self, hour: int = 0, minute: int = 0) -> "CronExpressionBuilder":
        _check("hour", hour, *HOUR_BOUNDS, "Hour")
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        self._set(str(minute), str(hour), WILDCARD, WILDCARD, WILDCARD)
        return self

    def weekly(
        self,
        day_of_week: DayOfWeek,
        hour: int = 0,
        minute: int = 0,
    ) -> "CronExpressionBuilder":
        _check("hour", hour, *HOUR_BOUNDS, "Hour")
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        day = _day_of_week(day_of_week)
        self._set(str(minute), str(hour), WILDCARD, WILDCARD, str(day))
        return self

    def monthly(self, day: int, hour: int = 0, minute: int = 0) -> "CronExpressionBuilder":
        _check("day", day, *DAY_BOUNDS, "Day")
        _check("hour", hour, *HOUR_BOUNDS, "Hour")
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        self._set(str(minute), str(hour), str(day), WILDCARD, WILDCARD)
        return self

    def yearly(
        self,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
    ) -> "CronExpressionBuilder":
        _check("month", month, *MONTH_BOUNDS, "Month")
        _check("day", day, *DAY_BOUNDS, "Day")
        _check("hour", hour, *HOUR_BOUNDS, "Hour")
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        self._set(str(minute), str(hour), str(day), str(month), WILDCARD)
        return self

    def hourly(self, minute: int = 0) -> "CronExpressionBuilder":
        _check("minute", minute, *MINUTE_BOUNDS, "Minute")
        self._set(str(minute), WILDCARD, WILDCARD, WILDCARD, WILDCARD)
        return self

    # Output

    def build(self) -> str:
        return " ".join(
            (self._minute, self._hour, self._day_of_month, self._month, self._day_of_week)
        )

    def reset(self) -> "CronExpressionBuilder":
        self._set(WILDCARD, WILDCARD, WILDCARD, WILDCARD, WILDCARD)
        return self

    def __str__(self) -> str:
        return self.build()

    def __repr__(self) -> str:
        return f"CronExpressionBuilder({self.build()!r})"

    def _at_midnight(self) -> None:
        self._minute = "0"
        self._hour = "0"
        self._day_of_month = WILDCARD

    def _set(
        self,
        minute: str,
        hour: str,
        day_of_month: str,
        month: str,
        day_of_week: str,
    ) -> None:
        self._minute = minute
        self._hour = hour
        self._day_of_month = day_of_month
        self._month = month
        self._day_of_week = day_of_week
