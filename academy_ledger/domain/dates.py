"""Calendar helpers for billing and pay periods.

All helpers work on ``datetime.date`` values, which carry no timezone, so a
period boundary can never drift by a day the way midnight timestamps do.
"""

import calendar
from datetime import date, datetime, timedelta

from academy_ledger.domain.billing import SEMESTER_SERVICE_CODES

FRIDAY = 4


def parse_iso_date(value: date | datetime | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def count_weekdays(start: date, end: date) -> int:
    """Count Monday-Friday days in the inclusive range ``start..end``."""
    if start > end:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    weekdays = full_weeks * 5
    start_weekday = start.weekday()
    for offset in range(remainder):
        if (start_weekday + offset) % 7 < 5:
            weekdays += 1
    return weekdays


def week_bounds(day: date) -> tuple[date, date]:
    """Return the Monday and Friday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=FRIDAY)


def month_bounds(day: date) -> tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def next_monday(day: date) -> date:
    days_ahead = 7 - day.weekday()
    return day + timedelta(days=days_ahead)


def last_friday_of_month(day: date) -> date:
    _, last = month_bounds(day)
    return last - timedelta(days=(last.weekday() - FRIDAY) % 7)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def format_period_label(start: date, end: date) -> str:
    """``Jan 6-12`` inside one month, ``Jan 30 - Feb 3`` across months."""
    start_month = start.strftime("%b")
    if start.year == end.year and start.month == end.month:
        return f"{start_month} {start.day}-{end.day}"
    return f"{start_month} {start.day} - {end.strftime('%b')} {end.day}"


def format_long_date(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def enrollment_period_label(service_code: str | None, day: date) -> str:
    """Label the academic period an enrollment belongs to.

    Semester services use Fall (Aug-Dec), Spring (Jan-May) and Summer
    (Jun-Jul). Everything else uses the school year starting in August.
    """
    if service_code in SEMESTER_SERVICE_CODES:
        if day.month >= 8:
            return f"Fall {day.year}"
        if day.month <= 5:
            return f"Spring {day.year}"
        return f"Summer {day.year}"
    start_year = day.year if day.month >= 8 else day.year - 1
    return f"{start_year}-{start_year + 1}"
