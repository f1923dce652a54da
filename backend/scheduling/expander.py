"""Expansion of an anchor interval plus a recurrence rule into occurrences.

Occurrence dates are computed on the wall clock of the display timezone with
python-dateutil's ``rrule``, so a 9:00 appointment stays at 9:00 across DST
changes. Each occurrence keeps the anchor's duration.
"""

import logging
from datetime import datetime, time, timezone, tzinfo
from typing import Iterator

from dateutil import rrule as rr

from backend.scheduling.errors import InvalidInterval, InvalidRecurrence
from backend.scheduling.intervals import Occurrence, ScanLimit, TimeInterval
from backend.scheduling.recurrence import (
    DayOfMonth,
    EndsAfter,
    EndsOnDate,
    Frequency,
    LastWeekday,
    NthWeekday,
    RecurrenceRule,
    Weekday,
    sorted_weekdays,
    weekday_of,
)
from backend.scheduling.wall_clock import resolve_timezone, to_local

logger = logging.getLogger(__name__)

DATEUTIL_WEEKDAYS = {
    Weekday.SU: rr.SU,
    Weekday.MO: rr.MO,
    Weekday.TU: rr.TU,
    Weekday.WE: rr.WE,
    Weekday.TH: rr.TH,
    Weekday.FR: rr.FR,
    Weekday.SA: rr.SA,
}


class OccurrenceSeries:
    """Lazy, restartable sequence of occurrences.

    Every ``iter()`` call starts a fresh cursor, so a series can be consumed
    more than once and by several callers at the same time.
    """

    def __init__(self, anchor: TimeInterval, rule: RecurrenceRule | None, scan_limit: ScanLimit, tz: tzinfo):
        self.anchor = anchor
        self.rule = rule
        self.scan_limit = scan_limit
        self.tz = tz

    def __iter__(self) -> Iterator[Occurrence]:
        return self._generate()

    def __repr__(self) -> str:
        return f'OccurrenceSeries(anchor={self.anchor!r}, rule={self.rule!r})'

    def _max_count(self) -> int:
        max_count = self.scan_limit.max_count
        if self.rule is not None and isinstance(self.rule.end, EndsAfter):
            max_count = min(max_count, self.rule.end.count)
        return max_count

    def _within_bounds(self, start: datetime) -> bool:
        if start > self.scan_limit.max_date:
            return False
        if self.rule is not None and isinstance(self.rule.end, EndsOnDate):
            return to_local(start, self.tz).date() <= self.rule.end.until
        return True

    def _generate(self) -> Iterator[Occurrence]:
        # A single event is never cut off by the scan limit.
        if self.rule is None:
            yield Occurrence(series_anchor=self.anchor, interval=self.anchor, sequence_index=0)
            return

        max_count = self._max_count()
        if max_count < 1 or not self._within_bounds(self.anchor.start):
            return

        yield Occurrence(series_anchor=self.anchor, interval=self.anchor, sequence_index=0)

        local_anchor = to_local(self.anchor.start, self.tz).replace(tzinfo=None)
        duration = self.anchor.duration
        emitted = 1

        for local_start in self._recurrence(local_anchor):
            if emitted >= max_count:
                return
            if local_start <= local_anchor:
                continue

            start = local_start.replace(tzinfo=self.tz).astimezone(timezone.utc)
            if not self._within_bounds(start):
                return

            yield Occurrence(
                series_anchor=self.anchor,
                interval=TimeInterval(start=start, end=start + duration),
                sequence_index=emitted,
            )
            emitted += 1

    def _recurrence(self, local_anchor: datetime) -> rr.rrule:
        rule = self.rule
        until = to_local(self.scan_limit.max_date, self.tz).replace(tzinfo=None)
        if isinstance(rule.end, EndsOnDate):
            until = min(until, datetime.combine(rule.end.until, time.max))

        options = {
            'dtstart': local_anchor,
            'interval': rule.interval,
            'wkst': rr.SU,
            'until': until,
        }

        if rule.frequency is Frequency.WEEKLY:
            weekdays = rule.by_weekday or {weekday_of(local_anchor.date())}
            return rr.rrule(
                rr.WEEKLY,
                byweekday=[DATEUTIL_WEEKDAYS[weekday] for weekday in sorted_weekdays(weekdays)],
                **options,
            )

        pattern = rule.monthly
        if isinstance(pattern, NthWeekday):
            return rr.rrule(rr.MONTHLY, byweekday=DATEUTIL_WEEKDAYS[pattern.weekday](pattern.ordinal), **options)
        if isinstance(pattern, LastWeekday):
            return rr.rrule(rr.MONTHLY, byweekday=DATEUTIL_WEEKDAYS[pattern.weekday](-1), **options)

        # Months without this day are skipped, not clamped to the month's end.
        day = pattern.day if isinstance(pattern, DayOfMonth) else local_anchor.day
        return rr.rrule(rr.MONTHLY, bymonthday=day, **options)


def expand(
    anchor: TimeInterval,
    rule: RecurrenceRule | None,
    scan_limit: ScanLimit,
    *,
    tz: str | tzinfo,
    require_weekdays: bool = False,
) -> OccurrenceSeries:
    """Validate the inputs and return the lazy occurrence series.

    A WEEKLY rule without weekdays repeats on the anchor's own weekday unless
    ``require_weekdays`` is set, in which case it is rejected.
    """
    if anchor.end <= anchor.start:
        raise InvalidInterval('Anchor end must be after its start.')

    if rule is not None and rule.frequency is Frequency.WEEKLY and not rule.by_weekday and require_weekdays:
        raise InvalidRecurrence('Weekly recurrence requires at least one weekday.')

    if scan_limit.max_count < 0:
        raise InvalidRecurrence('Scan limit count cannot be negative.')

    zone = resolve_timezone(tz)
    logger.debug('Expanding %s from %s in %s', rule, anchor.start.isoformat(), zone)
    return OccurrenceSeries(anchor, rule, scan_limit, zone)
