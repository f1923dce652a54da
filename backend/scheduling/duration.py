from datetime import datetime, tzinfo

from backend.scheduling.errors import SchedulingError
from backend.scheduling.wall_clock import to_local

EMPTY_DURATION = '0 mins'


def format_duration(
    start: datetime | None,
    end: datetime | None,
    is_all_day: bool,
    tz: str | tzinfo | None = None,
) -> str:
    """Human-readable length of an event, e.g. ``"50 mins"`` or ``"2 days"``.

    All-day events count calendar days between the two dates. Timed events
    count rounded minutes and never go below ``"0 mins"``. Bad input falls
    back to ``"0 mins"`` instead of raising.
    """
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        return EMPTY_DURATION

    try:
        if is_all_day:
            if tz is not None:
                start, end = to_local(start, tz), to_local(end, tz)
            days = max(0, (end.date() - start.date()).days)
            return f'{days} day' if days == 1 else f'{days} days'

        minutes = round((end - start).total_seconds() / 60)
    except (TypeError, SchedulingError):
        return EMPTY_DURATION

    return f'{max(0, minutes)} mins'
