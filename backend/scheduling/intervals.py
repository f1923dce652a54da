"""Value types shared by the expander and the reconciler."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from backend.scheduling.errors import InvalidInterval


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TimeInterval:
    """Half-open span of absolute time. Naive datetimes are read as UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, 'start', as_utc(self.start))
        object.__setattr__(self, 'end', as_utc(self.end))
        if self.end <= self.start:
            raise InvalidInterval(f'Interval end {self.end.isoformat()} must be after start {self.start.isoformat()}.')

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, other: 'TimeInterval') -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: 'TimeInterval') -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Occurrence:
    series_anchor: TimeInterval
    interval: TimeInterval
    sequence_index: int


@dataclass(frozen=True)
class ScanLimit:
    """Hard bound on an expansion, applied on top of the rule's own end."""

    max_count: int
    max_date: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, 'max_date', as_utc(self.max_date))

    @classmethod
    def from_anchor(cls, anchor: TimeInterval, max_count: int, max_days: int) -> 'ScanLimit':
        return cls(max_count=max_count, max_date=anchor.start + timedelta(days=max_days))
