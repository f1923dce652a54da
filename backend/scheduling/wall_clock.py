"""Conversion between user-entered wall-clock values and absolute instants."""

import re
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from backend.scheduling.errors import InvalidTimeFormat, InvalidTimeZone

TIME_24H_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
TIME_12H_PATTERN = re.compile(r'^(0?[1-9]|1[0-2]):([0-5][0-9])\s*(AM|PM)$', re.IGNORECASE)

ALL_DAY_START = time(0, 0, 0)
ALL_DAY_END = time(23, 59, 59)


def resolve_timezone(tz: str | tzinfo) -> tzinfo:
    if isinstance(tz, tzinfo):
        return tz

    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeZone(f'Unknown timezone: {tz!r}') from exc


def normalize_time_string(value: str) -> str:
    """Return ``value`` as a zero-padded 24-hour ``HH:MM`` string.

    Accepts ``"h:mm AM"``/``"h:mm PM"`` and ``"H:mm"``/``"HH:mm"``.
    """
    candidate = (value or '').strip()

    match_24h = TIME_24H_PATTERN.match(candidate)
    if match_24h:
        return f'{int(match_24h.group(1)):02d}:{match_24h.group(2)}'

    match_12h = TIME_12H_PATTERN.match(candidate)
    if match_12h:
        hour = int(match_12h.group(1)) % 12
        if match_12h.group(3).upper() == 'PM':
            hour += 12
        return f'{hour:02d}:{match_12h.group(2)}'

    raise InvalidTimeFormat(f'Invalid time format: {value!r}. Expected "h:mm AM|PM" or "HH:mm".')


def parse_time_string(value: str) -> time:
    hours, minutes = normalize_time_string(value).split(':')
    return time(int(hours), int(minutes))


def to_instant(
    day: date,
    time_string: str | None,
    is_all_day: bool,
    tz: str | tzinfo,
    *,
    is_end: bool = False,
) -> datetime:
    """Combine a local date and time in ``tz`` into an aware UTC datetime.

    All-day values ignore ``time_string``: starts resolve to the beginning of
    the day and ends (``is_end=True``) to 23:59:59.
    """
    zone = resolve_timezone(tz)

    if is_all_day:
        local_time = ALL_DAY_END if is_end else ALL_DAY_START
    elif time_string is None:
        raise InvalidTimeFormat('A time is required for events that are not all-day.')
    else:
        local_time = parse_time_string(time_string)

    local = datetime.combine(day, local_time).replace(tzinfo=zone)
    return local.astimezone(timezone.utc)


def to_local(instant: datetime, tz: str | tzinfo) -> datetime:
    # Naive instants are treated as UTC, which is how they are stored.
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(resolve_timezone(tz))


def from_instant(instant: datetime, tz: str | tzinfo) -> tuple[date, str]:
    local = to_local(instant, tz)
    return local.date(), local.strftime('%H:%M')


def local_date(instant: datetime, tz: str | tzinfo) -> date:
    return to_local(instant, tz).date()
