from __future__ import annotations

from datetime import time

MINUTES_PER_DAY = 24 * 60


def parse_clock_minutes(value: str | None) -> int | None:
    """Minutes since midnight for ``HH:MM`` or ``HH:MM:SS``; ``None`` when unreadable.

    Seconds are accepted but truncated, scanner logs carry them while every
    rule in this system works at minute resolution.
    """
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hour = int(parts[0])
        minute = int(parts[1])
        second = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return None
    return hour * 60 + minute


def format_clock_minutes(minutes: int) -> str:
    value = minutes % MINUTES_PER_DAY
    return f"{value // 60:02d}:{value % 60:02d}"


def normalize_clock_time(value: str | None) -> str | None:
    minutes = parse_clock_minutes(value)
    if minutes is None:
        return None
    return format_clock_minutes(minutes)


def minutes_between(start: str, end: str) -> int | None:
    start_minutes = parse_clock_minutes(start)
    end_minutes = parse_clock_minutes(end)
    if start_minutes is None or end_minutes is None:
        return None
    return end_minutes - start_minutes


def clock_from_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def time_from_clock(value: str) -> time:
    minutes = parse_clock_minutes(value)
    if minutes is None:
        raise ValueError(f"Invalid clock time: {value!r}")
    return time(hour=minutes // 60, minute=minutes % 60)


def minutes_to_hours(minutes: int) -> float:
    return round(minutes / 60, 2)
