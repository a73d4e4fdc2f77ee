"""Unit tests for calendar month arithmetic."""

from datetime import UTC, datetime

from dischargely.core.dates import add_calendar_months, utc_now


class TestAddCalendarMonths:
    def test_simple(self):
        assert add_calendar_months(datetime(2026, 1, 15, tzinfo=UTC), 2) == datetime(
            2026, 3, 15, tzinfo=UTC
        )

    def test_clamps_to_month_end(self):
        assert add_calendar_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)

    def test_leap_year(self):
        assert add_calendar_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    def test_crosses_year(self):
        assert add_calendar_months(datetime(2026, 11, 30), 3) == datetime(2027, 2, 28)

    def test_keeps_time_and_timezone(self):
        result = add_calendar_months(datetime(2026, 5, 1, 8, 45, tzinfo=UTC), 1)
        assert result.hour == 8
        assert result.minute == 45
        assert result.tzinfo is UTC


def test_utc_now_is_aware():
    assert utc_now().tzinfo is UTC
