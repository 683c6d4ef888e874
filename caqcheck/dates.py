from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

ISO_FORMAT = "%Y-%m-%d"
DISPLAY_FORMAT = "%d/%m/%Y"


def to_date(value: str | date | datetime | None) -> date | None:
    """Read a calendar date, returning None for anything unparseable.

    Strings are read as ``YYYY-MM-DD`` local dates, never through a UTC
    timestamp, so ``"2021-01-01"`` is always January 1st.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.strptime(text[:10], ISO_FORMAT).date()
    except ValueError:
        return None


def months_between(start: date, end: date) -> int:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


def days_between(start: date, end: date) -> int:
    return (end - start).days


def add_months(value: date, months: int) -> date:
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def overlaps(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b


def format_date(value: date | None) -> str:
    if value is None:
        return "??"
    return value.strftime(DISPLAY_FORMAT)


def iso(value: date | None) -> str | None:
    return value.isoformat() if value else None
