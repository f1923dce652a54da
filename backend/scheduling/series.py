"""Turn raw scheduling form fields into an anchor interval and a rule."""

import logging
from datetime import date, tzinfo

from backend.scheduling.errors import MalformedRule
from backend.scheduling.intervals import TimeInterval
from backend.scheduling.recurrence import RecurrenceRule, parse
from backend.scheduling.wall_clock import to_instant

logger = logging.getLogger(__name__)


def resolve_anchor(
    start_date: date,
    start_time: str | None,
    end_date: date,
    end_time: str | None,
    is_all_day: bool,
    tz: str | tzinfo,
) -> TimeInterval:
    start = to_instant(start_date, start_time, is_all_day, tz)
    end = to_instant(end_date, end_time, is_all_day, tz, is_end=True)
    return TimeInterval(start=start, end=end)


def parse_rule_or_none(value: str | None) -> RecurrenceRule | None:
    """Parse a stored rule, treating an unparseable one as non-recurring."""
    if value is None or not value.strip():
        return None

    try:
        return parse(value)
    except MalformedRule:
        logger.warning('Ignoring malformed recurrence rule %r; scheduling as a single event.', value, exc_info=True)
        return None
