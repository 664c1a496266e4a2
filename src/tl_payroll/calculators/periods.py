"""Pay period arithmetic."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from tl_payroll.calculators.rate_table import RateTable
from tl_payroll.calculators.types import ZERO, PayFrequency

_INTERVAL_DAYS = {
    PayFrequency.WEEKLY: 7,
    PayFrequency.BIWEEKLY: 14,
}


def pay_periods_in_month(pay_date: date | None, frequency: PayFrequency | str) -> int | None:
    """Number of weekly/biweekly pay dates falling in the pay date's month.

    Walks back from the pay date in whole intervals to the first pay date of
    the month, then counts forward. Monthly runs return None.
    """
    interval = _INTERVAL_DAYS.get(PayFrequency(frequency))
    if pay_date is None or interval is None:
        return None

    step = timedelta(days=interval)
    cursor = pay_date
    while (cursor - step).month == pay_date.month and (cursor - step).year == pay_date.year:
        cursor -= step

    count = 0
    while cursor.month == pay_date.month and cursor.year == pay_date.year:
        count += 1
        cursor += step
    return count or None


def effective_periods_in_month(
    table: RateTable,
    frequency: PayFrequency | str,
    periods_in_month: int | None = None,
) -> Decimal:
    """Pay periods the month is split into.

    The actual count of weekly/biweekly pay dates wins over the table's
    average, so the periods of one month always add up to the month.
    """
    if PayFrequency(frequency) != PayFrequency.MONTHLY and periods_in_month:
        return Decimal(periods_in_month)
    return table.period(frequency).periods_per_month


def default_period_hours(
    table: RateTable,
    frequency: PayFrequency | str,
    periods_in_month: int | None = None,
) -> Decimal:
    """Standard contracted hours for one pay period, rounded to 2 decimals."""
    periods = effective_periods_in_month(table, frequency, periods_in_month)
    return (table.standard_monthly_hours / periods).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def pro_rata_hours(
    default_hours: Decimal,
    period_start: date,
    period_end: date,
    hire_date: date | None = None,
    termination_date: date | None = None,
) -> Decimal:
    """Scale default hours by the calendar days employed within the period."""
    total_days = (period_end - period_start).days + 1
    if total_days <= 0:
        return ZERO

    start = max(period_start, hire_date) if hire_date else period_start
    end = min(period_end, termination_date) if termination_date else period_end
    employed_days = (end - start).days + 1
    if employed_days <= 0:
        return ZERO
    if employed_days >= total_days:
        return default_hours
    return (default_hours * employed_days / total_days).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )
