"""Minute-of-day intervals used for every same-day collision check."""

from dataclasses import dataclass
from typing import Iterable

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class MinuteInterval:
    """Half-open interval ``[start_minute, end_minute)``."""

    start_minute: int
    end_minute: int

    @classmethod
    def from_duration(cls, start_minute: int, duration_minutes: int) -> "MinuteInterval":
        return cls(start_minute, start_minute + duration_minutes)


def overlaps(start_minute: int, duration_minutes: int, intervals: Iterable[MinuteInterval]) -> bool:
    """True when ``[start, start + duration)`` intersects any interval. Touching is not overlap."""
    end_minute = start_minute + duration_minutes
    return any(
        start_minute < interval.end_minute and end_minute > interval.start_minute
        for interval in intervals
    )


def to_slot_label(minute: int) -> str:
    hours, minutes = divmod(minute, 60)
    return f"{hours:02d}:{minutes:02d}"


def parse_slot_label(label: str) -> int:
    hours, _, minutes = label.partition(":")
    return int(hours) * 60 + int(minutes)
