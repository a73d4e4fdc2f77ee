import calendar
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def add_calendar_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month.

    Jan 31 + 1 month is Feb 28 (Feb 29 in leap years), never early March.
    Time of day and tzinfo are preserved.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
