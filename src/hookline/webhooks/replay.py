"""Replay window validation for signed requests."""

from __future__ import annotations

from datetime import datetime

# 9999-12-31T23:59:59Z; anything larger is not a real timestamp
MAX_TIMESTAMP = 253_402_300_799


def is_fresh(timestamp: float, tolerance_seconds: float, now: datetime | float) -> bool:
    """Check that a request timestamp lies within the tolerance window.

    The window is symmetric: stale timestamps and timestamps too far in the
    future are both rejected. The boundary is inclusive.

    Args:
        timestamp: Unix seconds taken from the request.
        tolerance_seconds: Maximum allowed distance from ``now``.
        now: Current time as an aware datetime or Unix seconds.

    Returns:
        True if ``abs(now - timestamp) <= tolerance_seconds``. A timestamp
        too large to represent as a float is never fresh.
    """
    current = now.timestamp() if isinstance(now, datetime) else float(now)
    try:
        return abs(current - float(timestamp)) <= tolerance_seconds
    except OverflowError:
        return False


def parse_timestamp(value: object) -> int | None:
    """Parse a timestamp header value into Unix seconds.

    Returns:
        The integer timestamp, or None when the value is missing, malformed
        or outside ``0..MAX_TIMESTAMP``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        # Bound the digit count before int() so huge headers stay cheap
        if len(value) > len(str(MAX_TIMESTAMP)):
            return None
        value = int(value)
    if not isinstance(value, int):
        return None
    if not 0 <= value <= MAX_TIMESTAMP:
        return None
    return value


__all__ = ["MAX_TIMESTAMP", "is_fresh", "parse_timestamp"]
