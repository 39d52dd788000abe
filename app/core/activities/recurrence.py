"""Next-occurrence calculation for recurring activities.

Monthly and yearly steps clamp to the last valid day of the target month, so
Jan 31 + 1 month is Feb 29 in a leap year and Feb 28 otherwise, and Feb 29 +
1 year is Feb 28. The time of day and timezone of the base date are kept.
"""

import calendar
from datetime import datetime, timedelta

from app.models.activity import RecurrencePattern


def add_months(base: datetime, months: int) -> datetime:
    """Shift ``base`` by whole calendar months, clamping the day of month."""
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return base.replace(year=year, month=month, day=min(base.day, last_day))


def next_occurrence(
    base_date: datetime,
    pattern: RecurrencePattern | str | None,
    interval: int | None = 1,
) -> datetime | None:
    """Compute the next occurrence after ``base_date``.

    Args:
        base_date: Date the current occurrence is scheduled for.
        pattern: daily, weekly, monthly or yearly.
        interval: Number of pattern units between occurrences; values below 1
            are treated as 1.

    Returns:
        The next occurrence, or None when the pattern is not recognised
        (meaning the activity should not be rescheduled).
    """
    if pattern is None:
        return None
    try:
        pattern = RecurrencePattern(pattern)
    except ValueError:
        return None

    step = interval if interval and interval > 0 else 1

    if pattern is RecurrencePattern.DAILY:
        return base_date + timedelta(days=step)
    if pattern is RecurrencePattern.WEEKLY:
        return base_date + timedelta(days=7 * step)
    if pattern is RecurrencePattern.MONTHLY:
        return add_months(base_date, step)
    return add_months(base_date, 12 * step)
