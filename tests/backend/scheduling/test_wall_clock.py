from datetime import date, datetime, timezone

import pytest

from backend.scheduling.errors import InvalidTimeFormat, InvalidTimeZone
from backend.scheduling.wall_clock import from_instant, normalize_time_string, to_instant


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('9:05 AM', '09:05'),
        ('09:05 am', '09:05'),
        ('12:00 AM', '00:00'),
        ('12:30 PM', '12:30'),
        ('1:15PM', '13:15'),
        ('11:59 pm', '23:59'),
        ('7:00', '07:00'),
        ('00:00', '00:00'),
        ('23:59', '23:59'),
    ],
)
def test_normalize_time_string_accepts_12_and_24_hour_forms(value: str, expected: str) -> None:
    assert normalize_time_string(value) == expected


@pytest.mark.parametrize('value', ['24:00', '9:60 AM', '13:00 PM', '0:30 AM', 'noon', '', '9am'])
def test_normalize_time_string_rejects_unknown_forms(value: str) -> None:
    with pytest.raises(InvalidTimeFormat):
        normalize_time_string(value)


def test_to_instant_converts_local_time_to_utc() -> None:
    instant = to_instant(date(2025, 1, 15), '9:00 AM', False, 'America/New_York')

    assert instant == datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)


def test_to_instant_uses_summer_offset_after_dst_change() -> None:
    instant = to_instant(date(2025, 7, 15), '09:00', False, 'America/New_York')

    assert instant == datetime(2025, 7, 15, 13, 0, tzinfo=timezone.utc)


def test_to_instant_forces_all_day_bounds() -> None:
    start = to_instant(date(2025, 1, 1), '3:00 PM', True, 'UTC')
    end = to_instant(date(2025, 1, 3), None, True, 'UTC', is_end=True)

    assert start == datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 3, 23, 59, 59, tzinfo=timezone.utc)


def test_to_instant_requires_time_for_timed_events() -> None:
    with pytest.raises(InvalidTimeFormat):
        to_instant(date(2025, 1, 1), None, False, 'UTC')


def test_to_instant_rejects_unknown_timezone() -> None:
    with pytest.raises(InvalidTimeZone):
        to_instant(date(2025, 1, 1), '09:00', False, 'Mars/Olympus_Mons')


@pytest.mark.parametrize(
    ('day', 'time_string', 'tz'),
    [
        (date(2025, 1, 15), '09:00', 'America/New_York'),
        (date(2025, 7, 4), '23:45', 'America/Los_Angeles'),
        (date(2025, 12, 31), '00:15', 'Europe/Berlin'),
        (date(2024, 2, 29), '12:00', 'Asia/Kolkata'),
        (date(2025, 3, 3), '06:30', 'UTC'),
    ],
)
def test_from_instant_inverts_to_instant(day: date, time_string: str, tz: str) -> None:
    assert from_instant(to_instant(day, time_string, False, tz), tz) == (day, time_string)


def test_from_instant_round_trips_12_hour_input_as_24_hour() -> None:
    instant = to_instant(date(2025, 5, 6), '2:30 PM', False, 'America/Chicago')

    assert from_instant(instant, 'America/Chicago') == (date(2025, 5, 6), '14:30')


def test_from_instant_treats_naive_values_as_utc() -> None:
    assert from_instant(datetime(2025, 1, 15, 14, 0), 'America/New_York') == (date(2025, 1, 15), '09:00')
