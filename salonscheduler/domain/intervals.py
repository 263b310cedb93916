"""
Half-open interval arithmetic shared by slot generation and conflict checks.

All functions are pure. Results are always ordered by start time ascending;
callers rely on that ordering.
"""

from typing import Iterable, List

from .models import TimeRange


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """True iff the ranges share time. Touching endpoints do not overlap."""
    return a.start < b.end and b.start < a.end


def expand(time_range: TimeRange, buffer_minutes: int) -> TimeRange:
    """
    Grow a range by ``buffer_minutes`` on both sides.

    The stored appointment is left untouched; the expanded copy is only
    used for comparisons.
    """
    if buffer_minutes == 0:
        return time_range

    return TimeRange(
        start=time_range.start.subtract(minutes=buffer_minutes),
        end=time_range.end.add(minutes=buffer_minutes),
    )


def merge(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or adjacent time ranges.

    Example: [09:00-10:00, 10:00-11:00, 10:30-12:00] -> [09:00-12:00]
    """
    sorted_ranges = sorted(ranges, key=lambda r: r.start)
    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(start=last.start, end=current.end)
        else:
            merged.append(current)

    return merged


def subtract_all(window: TimeRange, busy_ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Remove every busy range from a window, yielding the free sub-ranges.

    Busy ranges may be unsorted, may overlap each other and may stick out
    of the window.

    Example:
    Window: 09:00 - 17:00
    Busy: [14:00-15:00, 10:00-11:00, 10:30-11:30]
    Result: [09:00-10:00, 11:30-14:00, 15:00-17:00]
    """
    free_ranges: List[TimeRange] = []
    current_start = window.start

    for busy in merge(busy_ranges):
        if busy.end <= window.start:
            continue
        if busy.start >= window.end:
            break

        if current_start < busy.start:
            free_ranges.append(TimeRange(start=current_start, end=busy.start))

        current_start = max(current_start, busy.end)

    if current_start < window.end:
        free_ranges.append(TimeRange(start=current_start, end=window.end))

    return free_ranges
