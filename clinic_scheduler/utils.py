"""Shared time helpers used across the scheduling core."""

import uuid
from datetime import date, datetime, time, timedelta


def add_minutes(value: time, minutes: int) -> time:
    """Shift a wall-clock time by ``minutes``.

    Examples:
        >>> add_minutes(time(9, 30), 45)
        datetime.time(10, 15)
    """
    shifted = datetime.combine(date.min, value) + timedelta(minutes=minutes)
    return shifted.time()


def minutes_between(start: time, end: time) -> int:
    """Whole minutes from ``start`` to ``end`` on the same day."""
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return int(delta.total_seconds() // 60)


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """True when two half-open intervals intersect.

    Examples:
        >>> intervals_overlap(time(9), time(12), time(11), time(13))
        True
        >>> intervals_overlap(time(9), time(12), time(12), time(13))
        False
    """
    return start1 < end2 and start2 < end1


def combine(day: date, at: time) -> datetime:
    """Naive local datetime for an appointment date and time."""
    return datetime.combine(day, at)


def generate_id(prefix: str) -> str:
    """Generate a prefixed short UUID, e.g. ``apt_1a2b3c4d``."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Inverse of :func:`to_minutes` for values within a single day."""
    return time(minutes // 60, minutes % 60)
