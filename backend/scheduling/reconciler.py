"""Admission decisions for proposed occurrences.

Works only on in-memory snapshots of availability, daily limits and booked
appointments supplied by the caller; nothing here touches the database.
"""

import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum

from backend.scheduling.expander import expand
from backend.scheduling.intervals import Occurrence, ScanLimit, TimeInterval
from backend.scheduling.recurrence import RecurrenceRule
from backend.scheduling.wall_clock import local_date, resolve_timezone

CANCELLED_STATUS = 'CANCELLED'
UNBOUNDED_SCAN_COUNT = sys.maxsize


class ReconciliationReason(str, Enum):
    OK = 'OK'
    NO_AVAILABILITY = 'NO_AVAILABILITY'
    LIMIT_REACHED = 'LIMIT_REACHED'
    OUTSIDE_WINDOW = 'OUTSIDE_WINDOW'


REASON_MESSAGES = {
    ReconciliationReason.OK: 'Time is available.',
    ReconciliationReason.NO_AVAILABILITY: 'The clinician has no availability at this time.',
    ReconciliationReason.LIMIT_REACHED: 'Appointment limit reached for this day.',
    ReconciliationReason.OUTSIDE_WINDOW: 'This time is outside the scheduling window.',
}


@dataclass(frozen=True)
class AvailabilityBlock:
    clinician_id: str
    interval: TimeInterval
    allow_online_requests: bool = False
    recurrence_rule: RecurrenceRule | None = None


@dataclass(frozen=True)
class DailyLimit:
    """Admin cap for one clinician and day. ``None`` means unlimited."""

    clinician_id: str
    date: date
    max_appointments: int | None


@dataclass(frozen=True)
class BookedAppointment:
    clinician_id: str
    interval: TimeInterval
    status: str = 'SCHEDULED'

    @property
    def counts_toward_limit(self) -> bool:
        return (self.status or '').upper() != CANCELLED_STATUS


@dataclass(frozen=True)
class ReconciliationVerdict:
    admitted: bool
    reason: ReconciliationReason

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self.reason]

    @classmethod
    def of(cls, reason: ReconciliationReason) -> 'ReconciliationVerdict':
        return cls(admitted=reason is ReconciliationReason.OK, reason=reason)


def find_daily_limit(limits: Iterable[DailyLimit], clinician_id: str, day: date) -> DailyLimit | None:
    for limit in limits:
        if limit.clinician_id == clinician_id and limit.date == day:
            return limit
    return None


def count_booked_on(
    appointments: Iterable[BookedAppointment],
    clinician_id: str,
    day: date,
    tz: tzinfo,
) -> int:
    return sum(
        1
        for appointment in appointments
        if appointment.clinician_id == clinician_id
        and appointment.counts_toward_limit
        and local_date(appointment.interval.start, tz) == day
    )


def is_limit_reached(
    proposed: Occurrence,
    clinician_id: str,
    limits: Iterable[DailyLimit],
    appointments: Iterable[BookedAppointment],
    tz: tzinfo,
) -> bool:
    day = local_date(proposed.interval.start, tz)
    limit = find_daily_limit(limits, clinician_id, day)

    # Limits are opt-in per day.
    if limit is None or limit.max_appointments is None:
        return False
    if limit.max_appointments == 0:
        return True
    return count_booked_on(appointments, clinician_id, day, tz) >= limit.max_appointments


def block_contains(
    block: AvailabilityBlock,
    proposed: TimeInterval,
    tz: tzinfo,
    scan_limit: ScanLimit | None = None,
) -> bool:
    if block.recurrence_rule is None:
        return block.interval.contains(proposed)

    # Without an explicit limit the block's own end and the proposal's start
    # are the only bounds; COUNT still has to be counted from the anchor.
    scan_limit = scan_limit or ScanLimit(max_count=UNBOUNDED_SCAN_COUNT, max_date=proposed.start)
    # Only block occurrences starting at or before the proposal can contain it.
    bounded = ScanLimit(max_count=scan_limit.max_count, max_date=min(scan_limit.max_date, proposed.start))
    for occurrence in expand(block.interval, block.recurrence_rule, bounded, tz=tz):
        if occurrence.interval.contains(proposed):
            return True
    return False


def has_availability(
    proposed: Occurrence,
    clinician_id: str,
    availability: Iterable[AvailabilityBlock],
    tz: tzinfo,
    scan_limit: ScanLimit | None = None,
) -> bool:
    return any(
        block_contains(block, proposed.interval, tz, scan_limit)
        for block in availability
        if block.clinician_id == clinician_id
    )


def reconcile(
    proposed: Occurrence,
    clinician_id: str,
    existing_availability: Sequence[AvailabilityBlock],
    existing_limits: Sequence[DailyLimit],
    existing_appointments: Sequence[BookedAppointment] = (),
    *,
    tz: str | tzinfo,
    window: TimeInterval | None = None,
    scan_limit: ScanLimit | None = None,
) -> ReconciliationVerdict:
    """Decide whether ``proposed`` may be booked for ``clinician_id``.

    Checks run in a fixed order and the first failure is reported: the
    scheduling window, then the daily limit, then availability containment.
    """
    zone = resolve_timezone(tz)

    if window is not None and not window.contains(proposed.interval):
        return ReconciliationVerdict.of(ReconciliationReason.OUTSIDE_WINDOW)

    if is_limit_reached(proposed, clinician_id, existing_limits, existing_appointments, zone):
        return ReconciliationVerdict.of(ReconciliationReason.LIMIT_REACHED)

    if not has_availability(proposed, clinician_id, existing_availability, zone, scan_limit):
        return ReconciliationVerdict.of(ReconciliationReason.NO_AVAILABILITY)

    return ReconciliationVerdict.of(ReconciliationReason.OK)


def reconcile_series(
    occurrences: Iterable[Occurrence],
    clinician_id: str,
    existing_availability: Sequence[AvailabilityBlock],
    existing_limits: Sequence[DailyLimit],
    existing_appointments: Sequence[BookedAppointment] = (),
    *,
    tz: str | tzinfo,
    window: TimeInterval | None = None,
    scan_limit: ScanLimit | None = None,
    count_unavailable: bool = True,
) -> list[tuple[Occurrence, ReconciliationVerdict]]:
    """Reconcile occurrences in order, counting earlier ones toward daily limits.

    Availability is advisory, so an occurrence rejected only for
    ``NO_AVAILABILITY`` still counts toward the cap unless
    ``count_unavailable`` is false.
    """
    booked = list(existing_appointments)
    results = []

    for occurrence in occurrences:
        verdict = reconcile(
            occurrence,
            clinician_id,
            existing_availability,
            existing_limits,
            booked,
            tz=tz,
            window=window,
            scan_limit=scan_limit,
        )
        results.append((occurrence, verdict))

        counts = verdict.admitted or (count_unavailable and verdict.reason is ReconciliationReason.NO_AVAILABILITY)
        if counts:
            booked.append(BookedAppointment(clinician_id=clinician_id, interval=occurrence.interval))

    return results


def scheduling_window(around: datetime, horizon_days: int) -> TimeInterval:
    """Window of ``horizon_days`` either side of ``around``."""
    return TimeInterval(start=around - timedelta(days=horizon_days), end=around + timedelta(days=horizon_days))
