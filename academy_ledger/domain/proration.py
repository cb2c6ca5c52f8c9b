from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from academy_ledger.domain.dates import count_weekdays

HOURS_PRECISION = Decimal("0.01")
WORKDAYS_PER_WEEK = 5


@dataclass(frozen=True)
class PeriodHours:
    hours: Decimal
    is_variable: bool


def overlap_window(
    period_start: date,
    period_end: date,
    assignment_start: date | None,
    assignment_end: date | None,
) -> tuple[date, date] | None:
    """Intersect a period with an assignment's active window (both inclusive)."""
    effective_start = period_start if assignment_start is None else max(period_start, assignment_start)
    effective_end = period_end if assignment_end is None else min(period_end, assignment_end)
    if effective_start > effective_end:
        return None
    return effective_start, effective_end


def calculate_period_hours(
    hours_per_week: Decimal | int | float | None,
    period_start: date,
    period_end: date,
    assignment_start: date | None = None,
    assignment_end: date | None = None,
) -> PeriodHours:
    """Prorate a weekly hours figure over the weekdays an assignment is active in a period.

    A ``None`` weekly figure marks untracked hours that someone has to fill in
    by hand, so it comes back as zero hours flagged variable. Hours assume a
    five day week: ``hours_per_week / 5`` per weekday in the overlap, rounded
    half-up to two decimals.
    """
    if hours_per_week is None:
        return PeriodHours(hours=Decimal("0.00"), is_variable=True)

    window = overlap_window(period_start, period_end, assignment_start, assignment_end)
    if window is None:
        return PeriodHours(hours=Decimal("0.00"), is_variable=False)

    weekdays = count_weekdays(*window)
    weekly = Decimal(str(hours_per_week)) if isinstance(hours_per_week, float) else Decimal(hours_per_week)
    hours = (weekly * weekdays / WORKDAYS_PER_WEEK).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)
    return PeriodHours(hours=hours, is_variable=False)
