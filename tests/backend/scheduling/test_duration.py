from datetime import datetime, timedelta, timezone

import pytest

from backend.scheduling.duration import format_duration


def test_format_duration_counts_calendar_days_for_all_day_events() -> None:
    assert format_duration(datetime(2025, 1, 1, 0, 0), datetime(2025, 1, 3, 23, 59, 59), True) == '2 days'


def test_format_duration_uses_singular_day() -> None:
    assert format_duration(datetime(2025, 1, 1, 0, 0), datetime(2025, 1, 2, 23, 59, 59), True) == '1 day'


def test_format_duration_single_all_day_event_is_zero_days() -> None:
    assert format_duration(datetime(2025, 1, 1, 0, 0), datetime(2025, 1, 1, 23, 59, 59), True) == '0 days'


def test_format_duration_all_day_uses_display_timezone() -> None:
    # Midnight to 23:59:59 in New York, stored as UTC instants.
    start = datetime(2025, 1, 1, 5, 0, tzinfo=timezone.utc)
    end = datetime(2025, 1, 3, 4, 59, 59, tzinfo=timezone.utc)

    assert format_duration(start, end, True, 'America/New_York') == '2 days'


def test_format_duration_counts_minutes_for_timed_events() -> None:
    start = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    assert format_duration(start, start + timedelta(minutes=90), False) == '90 mins'


def test_format_duration_rounds_to_nearest_minute() -> None:
    start = datetime(2025, 1, 1, 9, 0)

    assert format_duration(start, start + timedelta(minutes=49, seconds=40), False) == '50 mins'


@pytest.mark.parametrize(
    ('start', 'end'),
    [
        (datetime(2025, 1, 1, 10, 0), datetime(2025, 1, 1, 9, 0)),
        (datetime(2025, 1, 1, 10, 0), datetime(2025, 1, 1, 10, 0)),
        (None, datetime(2025, 1, 1, 10, 0)),
        (datetime(2025, 1, 1, 10, 0), None),
        ('2025-01-01T10:00', '2025-01-01T11:00'),
        (datetime(2025, 1, 1, 10, 0), datetime(2025, 1, 1, 11, 0, tzinfo=timezone.utc)),
    ],
)
def test_format_duration_falls_back_to_zero_minutes(start, end) -> None:
    assert format_duration(start, end, False) == '0 mins'
