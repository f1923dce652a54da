from datetime import date

import pytest
from pydantic import ValidationError

from backend.scheduling.errors import MalformedRule
from backend.scheduling.recurrence import (
    DayOfMonth,
    EndsAfter,
    EndsOnDate,
    Frequency,
    LastWeekday,
    MonthlyPatternKind,
    NeverEnds,
    NthWeekday,
    RecurrenceRule,
    Weekday,
    build,
    monthly_pattern_for,
    parse,
    weekday_of,
)


def test_build_sorts_weekdays_in_week_order() -> None:
    rule = RecurrenceRule(
        frequency=Frequency.WEEKLY,
        by_weekday=frozenset({Weekday.FR, Weekday.MO, Weekday.SU}),
        end=EndsAfter(count=6),
    )

    assert build(rule) == 'FREQ=WEEKLY;BYDAY=SU,MO,FR;COUNT=6'


def test_build_omits_interval_of_one() -> None:
    assert build(RecurrenceRule(frequency=Frequency.WEEKLY)) == 'FREQ=WEEKLY'
    assert build(RecurrenceRule(frequency=Frequency.WEEKLY, interval=3)) == 'FREQ=WEEKLY;INTERVAL=3'


@pytest.mark.parametrize(
    ('monthly', 'expected'),
    [
        (DayOfMonth(day=31), 'FREQ=MONTHLY;BYMONTHDAY=31'),
        (NthWeekday(ordinal=2, weekday=Weekday.TU), 'FREQ=MONTHLY;BYDAY=2TU'),
        (LastWeekday(weekday=Weekday.FR), 'FREQ=MONTHLY;BYDAY=-1FR'),
        (None, 'FREQ=MONTHLY'),
    ],
)
def test_build_monthly_patterns(monthly, expected: str) -> None:
    assert build(RecurrenceRule(frequency=Frequency.MONTHLY, monthly=monthly)) == expected


def test_build_until_uses_end_of_day_utc_suffix() -> None:
    rule = RecurrenceRule(frequency=Frequency.WEEKLY, end=EndsOnDate(until=date(2025, 6, 30)))

    assert build(rule) == 'FREQ=WEEKLY;UNTIL=20250630T235959Z'


def test_parse_accepts_keys_in_any_order_and_ignores_unknown_keys() -> None:
    rule = parse('COUNT=4;WKST=SU;BYDAY=WE,MO;FREQ=WEEKLY;X-NAME=standup')

    assert rule == RecurrenceRule(
        frequency=Frequency.WEEKLY,
        by_weekday=frozenset({Weekday.MO, Weekday.WE}),
        end=EndsAfter(count=4),
    )


def test_parse_tolerates_rrule_prefix_and_full_until_timestamp() -> None:
    rule = parse('RRULE:FREQ=MONTHLY;INTERVAL=2;BYDAY=-1TH;UNTIL=20251231T235959Z')

    assert rule.frequency is Frequency.MONTHLY
    assert rule.interval == 2
    assert rule.monthly == LastWeekday(weekday=Weekday.TH)
    assert rule.end == EndsOnDate(until=date(2025, 12, 31))


def test_parse_defaults_to_never_ending() -> None:
    assert parse('FREQ=WEEKLY').end == NeverEnds()


@pytest.mark.parametrize(
    'value',
    [
        '',
        'INTERVAL=2;COUNT=3',
        'FREQ=DAILY',
        'FREQ=YEARLY;COUNT=2',
        'FREQ=WEEKLY;COUNT=3;UNTIL=20250101',
        'FREQ=WEEKLY;INTERVAL=0',
        'FREQ=WEEKLY;COUNT=many',
        'FREQ=WEEKLY;BYDAY=MO,XX',
        'FREQ=WEEKLY;BYDAY=2MO',
        'FREQ=WEEKLY;BYMONTHDAY=3',
        'FREQ=MONTHLY;BYDAY=MO,WE',
        'FREQ=MONTHLY;BYMONTHDAY=32',
        'FREQ=MONTHLY;BYMONTHDAY=3;BYDAY=1MO',
        'FREQ=WEEKLY;UNTIL=20251340',
        'FREQ=WEEKLY;FREQ=MONTHLY',
    ],
)
def test_parse_rejects_malformed_rules(value: str) -> None:
    with pytest.raises(MalformedRule):
        parse(value)


@pytest.mark.parametrize(
    'rule',
    [
        RecurrenceRule(frequency=Frequency.WEEKLY),
        RecurrenceRule(frequency=Frequency.WEEKLY, interval=2, by_weekday=frozenset({Weekday.SA, Weekday.TU})),
        RecurrenceRule(frequency=Frequency.WEEKLY, by_weekday=frozenset(Weekday), end=EndsAfter(count=10)),
        RecurrenceRule(frequency=Frequency.MONTHLY, monthly=DayOfMonth(day=15), end=EndsOnDate(until=date(2026, 1, 1))),
        RecurrenceRule(frequency=Frequency.MONTHLY, interval=3, monthly=NthWeekday(ordinal=5, weekday=Weekday.SU)),
        RecurrenceRule(frequency=Frequency.MONTHLY, monthly=LastWeekday(weekday=Weekday.MO), end=EndsAfter(count=1)),
    ],
)
def test_parse_inverts_build(rule: RecurrenceRule) -> None:
    assert parse(build(rule)) == rule


def test_rule_rejects_monthly_pattern_on_weekly_frequency() -> None:
    with pytest.raises(ValidationError):
        RecurrenceRule(frequency=Frequency.WEEKLY, monthly=DayOfMonth(day=3))


def test_rule_rejects_weekdays_on_monthly_frequency() -> None:
    with pytest.raises(ValidationError):
        RecurrenceRule(frequency=Frequency.MONTHLY, by_weekday=frozenset({Weekday.MO}))


def test_weekday_of_uses_sunday_first_codes() -> None:
    assert weekday_of(date(2025, 3, 2)) is Weekday.SU
    assert weekday_of(date(2025, 3, 3)) is Weekday.MO
    assert weekday_of(date(2025, 3, 8)) is Weekday.SA


@pytest.mark.parametrize(
    ('kind', 'anchor', 'expected'),
    [
        (MonthlyPatternKind.DAY_OF_MONTH, date(2025, 1, 31), DayOfMonth(day=31)),
        (MonthlyPatternKind.NTH_WEEKDAY, date(2025, 3, 11), NthWeekday(ordinal=2, weekday=Weekday.TU)),
        (MonthlyPatternKind.NTH_WEEKDAY, date(2025, 3, 29), NthWeekday(ordinal=5, weekday=Weekday.SA)),
        (MonthlyPatternKind.LAST_WEEKDAY, date(2025, 1, 31), LastWeekday(weekday=Weekday.FR)),
    ],
)
def test_monthly_pattern_for_anchor(kind: MonthlyPatternKind, anchor: date, expected) -> None:
    assert monthly_pattern_for(kind, anchor) == expected
