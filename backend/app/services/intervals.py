"""Interval comparisons shared by the timetable validators.

Time intervals are half-open: a period ending at 10:00 and one starting at
10:00 do not overlap. Validity windows are closed date ranges whose missing
ends are unbounded.
"""

from __future__ import annotations

from datetime import date, time


def time_overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Return True when [start_a, end_a) and [start_b, end_b) share an instant."""
    return start_a < end_b and start_b < end_a


def date_ranges_overlap(
    effective_a: date | None,
    end_a: date | None,
    effective_b: date | None,
    end_b: date | None,
) -> bool:
    """Return True when two validity windows share at least one day.

    A missing end date means the window never closes and a missing effective
    date means it has always been open, so either bound only constrains the
    comparison when it is present.
    """
    if effective_a is not None and end_b is not None and effective_a > end_b:
        return False
    if effective_b is not None and end_a is not None and effective_b > end_a:
        return False
    return True
