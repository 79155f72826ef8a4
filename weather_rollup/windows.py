"""
Window boundaries for each summary granularity.

All functions are pure: they take a reference instant (local, naive) and
return the window a scheduled run should aggregate.
"""
from datetime import datetime, timedelta

from .models import Window, WindowKind


def hour_window(reference: datetime) -> Window:
    """The hour containing ``reference``."""
    day = reference.date()
    return Window(WindowKind.HOUR, day, day, hour=reference.hour)


def day_window(reference: datetime) -> Window:
    """Yesterday relative to ``reference``."""
    yesterday = reference.date() - timedelta(days=1)
    return Window(WindowKind.DAY, yesterday, yesterday)


def week_window(reference: datetime) -> Window:
    """
    The ISO week before the one containing ``reference``.

    Monday of that week is ``isoweekday + 6`` days back, which lands 7 days
    back on a Monday and 13 days back on a Sunday.
    """
    monday = reference.date() - timedelta(days=reference.isoweekday() + 6)
    return Window(WindowKind.WEEK, monday, monday + timedelta(days=6))


def month_window(reference: datetime) -> Window:
    """The calendar month before the one containing ``reference``."""
    first_of_current = reference.date().replace(day=1)
    last_day = first_of_current - timedelta(days=1)
    first_day = last_day.replace(day=1)
    return Window(WindowKind.MONTH, first_day, last_day)


_CALCULATORS = {
    WindowKind.HOUR: hour_window,
    WindowKind.DAY: day_window,
    WindowKind.WEEK: week_window,
    WindowKind.MONTH: month_window,
}


def window_for(kind: WindowKind, reference: datetime) -> Window:
    """Window of the given granularity relative to ``reference``."""
    return _CALCULATORS[kind](reference)
