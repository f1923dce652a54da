"""Recurrence rules and their compact ``KEY=value;...`` string form.

The string form is what gets persisted on appointments and availability
blocks, e.g. ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10``.
"""

import math
import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, model_validator

from backend.scheduling.errors import MalformedRule


class Frequency(str, Enum):
    WEEKLY = 'WEEKLY'
    MONTHLY = 'MONTHLY'


class Weekday(str, Enum):
    SU = 'SU'
    MO = 'MO'
    TU = 'TU'
    WE = 'WE'
    TH = 'TH'
    FR = 'FR'
    SA = 'SA'

    @property
    def position(self) -> int:
        """Position in a Sunday-first week."""
        return WEEKDAY_ORDER.index(self)


WEEKDAY_ORDER = tuple(Weekday)


class MonthlyPatternKind(str, Enum):
    DAY_OF_MONTH = 'DAY_OF_MONTH'
    NTH_WEEKDAY = 'NTH_WEEKDAY'
    LAST_WEEKDAY = 'LAST_WEEKDAY'


class DayOfMonth(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[MonthlyPatternKind.DAY_OF_MONTH] = MonthlyPatternKind.DAY_OF_MONTH
    day: int = Field(ge=1, le=31)


class NthWeekday(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[MonthlyPatternKind.NTH_WEEKDAY] = MonthlyPatternKind.NTH_WEEKDAY
    ordinal: int = Field(ge=1, le=5)
    weekday: Weekday


class LastWeekday(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[MonthlyPatternKind.LAST_WEEKDAY] = MonthlyPatternKind.LAST_WEEKDAY
    weekday: Weekday


MonthlyPattern = Annotated[Union[DayOfMonth, NthWeekday, LastWeekday], Field(discriminator='kind')]


class NeverEnds(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal['never'] = 'never'


class EndsAfter(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal['after'] = 'after'
    count: PositiveInt


class EndsOnDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal['on_date'] = 'on_date'
    until: date


RecurrenceEnd = Annotated[Union[NeverEnds, EndsAfter, EndsOnDate], Field(discriminator='kind')]


class RecurrenceRule(BaseModel):
    """A weekly or monthly repetition of an anchor interval."""

    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    interval: PositiveInt = 1
    by_weekday: frozenset[Weekday] = frozenset()
    monthly: MonthlyPattern | None = None
    end: RecurrenceEnd = NeverEnds()

    @model_validator(mode='after')
    def check_pattern_matches_frequency(self) -> 'RecurrenceRule':
        if self.frequency is Frequency.WEEKLY and self.monthly is not None:
            raise ValueError('Monthly patterns only apply to MONTHLY rules.')
        if self.frequency is Frequency.MONTHLY and self.by_weekday:
            raise ValueError('Weekday sets only apply to WEEKLY rules.')
        return self


KNOWN_KEYS = {'FREQ', 'INTERVAL', 'BYDAY', 'BYMONTHDAY', 'COUNT', 'UNTIL'}
MONTHLY_BYDAY_PATTERN = re.compile(r'^(-1|\+?[1-5])(SU|MO|TU|WE|TH|FR|SA)$')
UNTIL_PATTERN = re.compile(r'^(\d{8})(T\d{6}Z?)?$')


def weekday_of(day: date) -> Weekday:
    return WEEKDAY_ORDER[(day.weekday() + 1) % 7]


def monthly_pattern_for(kind: MonthlyPatternKind, anchor: date) -> DayOfMonth | NthWeekday | LastWeekday:
    """Derive the monthly pattern the scheduling form means for ``anchor``.

    "2nd Tuesday" style ordinals count whole weeks from the first of the month.
    """
    kind = MonthlyPatternKind(kind)
    if kind is MonthlyPatternKind.DAY_OF_MONTH:
        return DayOfMonth(day=anchor.day)
    if kind is MonthlyPatternKind.NTH_WEEKDAY:
        return NthWeekday(ordinal=math.ceil(anchor.day / 7), weekday=weekday_of(anchor))
    return LastWeekday(weekday=weekday_of(anchor))


def sorted_weekdays(weekdays) -> list[Weekday]:
    return sorted((Weekday(code) for code in weekdays), key=lambda weekday: weekday.position)


def build(rule: RecurrenceRule) -> str:
    parts = [f'FREQ={rule.frequency.value}']

    if rule.interval > 1:
        parts.append(f'INTERVAL={rule.interval}')

    if rule.frequency is Frequency.WEEKLY and rule.by_weekday:
        parts.append('BYDAY=' + ','.join(weekday.value for weekday in sorted_weekdays(rule.by_weekday)))

    if rule.frequency is Frequency.MONTHLY and rule.monthly is not None:
        pattern = rule.monthly
        if isinstance(pattern, DayOfMonth):
            parts.append(f'BYMONTHDAY={pattern.day}')
        elif isinstance(pattern, NthWeekday):
            parts.append(f'BYDAY={pattern.ordinal}{pattern.weekday.value}')
        else:
            parts.append(f'BYDAY=-1{pattern.weekday.value}')

    if isinstance(rule.end, EndsAfter):
        parts.append(f'COUNT={rule.end.count}')
    elif isinstance(rule.end, EndsOnDate):
        parts.append(f'UNTIL={rule.end.until.strftime("%Y%m%d")}T235959Z')

    return ';'.join(parts)


def _split_fields(value: str) -> dict[str, str]:
    text = value.strip()
    if text.upper().startswith('RRULE:'):
        text = text[len('RRULE:'):]

    fields: dict[str, str] = {}
    for part in text.split(';'):
        key, separator, raw_value = part.partition('=')
        key = key.strip().upper()
        if not separator or key not in KNOWN_KEYS:
            continue
        if key in fields:
            raise MalformedRule(f'Duplicate {key} in recurrence rule {value!r}.')
        fields[key] = raw_value.strip().upper()

    return fields


def _parse_positive_int(key: str, raw_value: str) -> int:
    try:
        number = int(raw_value)
    except ValueError as exc:
        raise MalformedRule(f'{key} must be an integer, got {raw_value!r}.') from exc

    if number < 1:
        raise MalformedRule(f'{key} must be positive, got {number}.')
    return number


def _parse_until(raw_value: str) -> date:
    match = UNTIL_PATTERN.match(raw_value)
    if not match:
        raise MalformedRule(f'UNTIL must look like YYYYMMDD or YYYYMMDDTHHMMSSZ, got {raw_value!r}.')

    try:
        return datetime.strptime(match.group(1), '%Y%m%d').date()
    except ValueError as exc:
        raise MalformedRule(f'UNTIL is not a valid date: {raw_value!r}.') from exc


def _parse_weekly_days(raw_value: str) -> frozenset[Weekday]:
    codes = [code.strip() for code in raw_value.split(',') if code.strip()]
    try:
        return frozenset(Weekday(code) for code in codes)
    except ValueError as exc:
        raise MalformedRule(f'BYDAY has an unknown weekday code: {raw_value!r}.') from exc


def _parse_monthly_pattern(fields: dict[str, str]) -> DayOfMonth | NthWeekday | LastWeekday | None:
    by_month_day = fields.get('BYMONTHDAY')
    by_day = fields.get('BYDAY')

    if by_month_day is not None and by_day is not None:
        raise MalformedRule('MONTHLY rules take either BYMONTHDAY or BYDAY, not both.')

    if by_month_day is not None:
        day = _parse_positive_int('BYMONTHDAY', by_month_day)
        if day > 31:
            raise MalformedRule(f'BYMONTHDAY must be between 1 and 31, got {day}.')
        return DayOfMonth(day=day)

    if by_day is not None:
        match = MONTHLY_BYDAY_PATTERN.match(by_day)
        if not match:
            raise MalformedRule(f'Monthly BYDAY must look like 2TU or -1FR, got {by_day!r}.')
        ordinal = int(match.group(1))
        weekday = Weekday(match.group(2))
        if ordinal == -1:
            return LastWeekday(weekday=weekday)
        return NthWeekday(ordinal=ordinal, weekday=weekday)

    return None


def parse(value: str) -> RecurrenceRule:
    """Parse a rule string produced by :func:`build` (keys in any order)."""
    if not value or not value.strip():
        raise MalformedRule('Recurrence rule is empty.')

    fields = _split_fields(value)

    raw_frequency = fields.get('FREQ')
    if raw_frequency is None:
        raise MalformedRule(f'Recurrence rule {value!r} has no FREQ.')
    try:
        frequency = Frequency(raw_frequency)
    except ValueError as exc:
        raise MalformedRule(f'Unsupported FREQ {raw_frequency!r}.') from exc

    if 'COUNT' in fields and 'UNTIL' in fields:
        raise MalformedRule('A recurrence rule cannot have both COUNT and UNTIL.')

    rule_fields: dict = {'frequency': frequency}

    if 'INTERVAL' in fields:
        rule_fields['interval'] = _parse_positive_int('INTERVAL', fields['INTERVAL'])

    if frequency is Frequency.WEEKLY:
        if 'BYMONTHDAY' in fields:
            raise MalformedRule('BYMONTHDAY is only valid for MONTHLY rules.')
        if 'BYDAY' in fields:
            rule_fields['by_weekday'] = _parse_weekly_days(fields['BYDAY'])
    else:
        rule_fields['monthly'] = _parse_monthly_pattern(fields)

    if 'COUNT' in fields:
        rule_fields['end'] = EndsAfter(count=_parse_positive_int('COUNT', fields['COUNT']))
    elif 'UNTIL' in fields:
        rule_fields['end'] = EndsOnDate(until=_parse_until(fields['UNTIL']))

    try:
        return RecurrenceRule(**rule_fields)
    except ValidationError as exc:
        raise MalformedRule(f'Invalid recurrence rule {value!r}: {exc}') from exc
