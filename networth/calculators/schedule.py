"""Recurring schedule dates."""

import calendar
from datetime import date, timedelta

from networth.models.portfolio import RecurringFrequency


_MONTH_STEPS = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.YEARLY: 12,
}


def add_months(start: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_run_date(start: date, frequency: RecurringFrequency) -> date:
    """
    The occurrence after `start`.

    Raises:
        ValueError: For a one-time (NONE) frequency
    """
    frequency = RecurringFrequency(frequency)
    if frequency == RecurringFrequency.WEEKLY:
        return start + timedelta(days=7)
    if frequency == RecurringFrequency.BIWEEKLY:
        return start + timedelta(days=14)
    if frequency in _MONTH_STEPS:
        return add_months(start, _MONTH_STEPS[frequency])
    raise ValueError("One-time flows have no next occurrence")
