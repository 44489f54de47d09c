"""
Calendar arithmetic for recurring contributions.

Pure functions over calendar dates. Datetimes are truncated to their date
before any comparison so a time-of-day never shifts a boundary.
Weekdays are Sunday-based: 0=Sunday .. 6=Saturday.
"""
from calendar import monthrange
from datetime import date, datetime, timedelta


def as_date(value) -> date:
    """Normalize a date, datetime or ISO string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    raise TypeError(f"cannot interpret {value!r} as a date")


def parse_date(raw_date: str) -> date:
    """ISO date, or the date part of an ISO timestamp."""
    return date.fromisoformat(raw_date.strip()[:10])


def weekday_of(value) -> int:
    return (as_date(value).weekday() + 1) % 7


def start_of_month(value) -> date:
    d = as_date(value)
    return d.replace(day=1)


def end_of_month(value) -> date:
    d = as_date(value)
    return d.replace(day=monthrange(d.year, d.month)[1])


def add_months(value, n: int) -> date:
    """Shift by ``n`` calendar months, clamping the day to the target month."""
    d = as_date(value)
    years, month_index = divmod(d.month - 1 + n, 12)
    year = d.year + years
    month = month_index + 1
    return date(year, month, min(d.day, monthrange(year, month)[1]))


def months_between(start, end) -> int:
    a, b = as_date(start), as_date(end)
    return (b.year - a.year) * 12 + (b.month - a.month)


def occurrence_in_month(anchor, month) -> date:
    """The anchor's day-of-month placed into ``month`` (clamped to its length)."""
    anchor_day = as_date(anchor).day
    m = start_of_month(month)
    return m.replace(day=min(anchor_day, monthrange(m.year, m.month)[1]))


def count_weekday_occurrences(start, end, target_weekday: int) -> int:
    """Count the dates in ``[start, end]`` (inclusive) falling on ``target_weekday``."""
    first_day, last_day = as_date(start), as_date(end)
    if first_day > last_day:
        return 0

    offset = (target_weekday - weekday_of(first_day)) % 7
    first_match = first_day + timedelta(days=offset)
    if first_match > last_day:
        return 0
    return (last_day - first_match).days // 7 + 1


def advance_by_weeks_preserving_weekday(origin, n: int) -> date:
    # plain day arithmetic: weekday is preserved across month and year ends
    return as_date(origin) + timedelta(days=7 * n)
