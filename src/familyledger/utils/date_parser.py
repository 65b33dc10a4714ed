"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

PERIODS = ("this-month", "this-year", "this-week", "last-month", "last-year", "last-week")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and relative
    ones: "today", "yesterday", "N days ago", "last month", "this year",
    "last friday", etc.

    Args:
        date_str: Date string
        today: Reference date for relative expressions (defaults to date.today())

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)

    if text.endswith(" days ago"):
        count = text[: -len(" days ago")].strip()
        if count.isdigit():
            return today - timedelta(days=int(count))

    if text.startswith(("last ", "this ")):
        which, period = text.split(" ", 1)
        if period in _WEEKDAYS and which == "last":
            days_ago = (today.weekday() - _WEEKDAYS.index(period)) % 7 or 7
            return today - timedelta(days=days_ago)
        if period in ("week", "month", "year"):
            return get_date_range(f"{which}-{period}", today=today)[0]

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a named period.

    Periods starting with ``this-`` end today; ``last-`` periods cover the
    whole previous week, month or year.

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    year_start = today.replace(month=1, day=1)

    if period == "this-week":
        return week_start, today
    if period == "this-month":
        return month_start, today
    if period == "this-year":
        return year_start, today
    if period == "last-week":
        start = week_start - timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "last-month":
        return month_start - relativedelta(months=1), month_start - timedelta(days=1)
    if period == "last-year":
        return year_start - relativedelta(years=1), year_start - timedelta(days=1)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")


def iter_dates(start: date, end: date):
    """Yield every calendar date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
