"""Quiet-hours window check."""


def in_quiet_hours(hour: int, start: int, end: int) -> bool:
    """Check whether `hour` falls inside the [start, end) quiet window.

    A window with start >= end wraps midnight, e.g. 22 -> 7.
    """
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end
