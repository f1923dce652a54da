from datetime import date, datetime, timezone
from enum import Enum

from fastapi import HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import SessionLocal, ensure_appointment_schema, ensure_availability_schema
from backend.scheduling.duration import format_duration
from backend.scheduling.errors import SchedulingError
from backend.scheduling.expander import expand
from backend.scheduling.intervals import Occurrence, ScanLimit, TimeInterval
from backend.scheduling.recurrence import RecurrenceRule
from backend.scheduling.series import parse_rule_or_none, resolve_anchor

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class DeleteScope(str, Enum):
    SINGLE = 'single'
    FUTURE = 'future'
    ALL = 'all'


class ScheduleRequestBase(BaseModel):
    clinician_id: str
    start_date: date
    end_date: date
    start_time: str | None = None
    end_time: str | None = None
    is_all_day: bool = False
    recurring_rule: str | None = None

    @field_validator('clinician_id')
    @classmethod
    def validate_clinician_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinician is required.')
        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_time(cls, value: str | None) -> str | None:
        # Format errors are reported by build_occurrences as 400s.
        if value is None or not value.strip():
            return None
        return value.strip()


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def to_db_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def scan_limit_for(anchor: TimeInterval) -> ScanLimit:
    return ScanLimit.from_anchor(anchor, config.RECURRENCE_MAX_OCCURRENCES, config.RECURRENCE_MAX_DAYS)


def build_occurrences(data: ScheduleRequestBase) -> tuple[RecurrenceRule | None, list[Occurrence]]:
    try:
        anchor = resolve_anchor(
            data.start_date,
            data.start_time,
            data.end_date,
            data.end_time,
            data.is_all_day,
            config.DISPLAY_TIMEZONE,
        )
        rule = parse_rule_or_none(data.recurring_rule)
        occurrences = list(expand(anchor, rule, scan_limit_for(anchor), tz=config.DISPLAY_TIMEZONE))
    except SchedulingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not occurrences:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The recurrence produces no occurrences.',
        )

    return rule, occurrences


def duration_label(start_time: datetime, end_time: datetime, is_all_day: bool) -> str:
    return format_duration(
        from_db_datetime(start_time),
        from_db_datetime(end_time),
        bool(is_all_day),
        config.DISPLAY_TIMEZONE,
    )


def series_rows(db, model, record, scope: DeleteScope) -> list:
    """Rows selected by a this/future/all edit or delete of ``record``."""
    if scope is DeleteScope.SINGLE or not record.series_id:
        return [record]

    query = db.query(model).filter(model.series_id == record.series_id)
    if scope is DeleteScope.FUTURE:
        query = query.filter(model.sequence_index >= (record.sequence_index or 0))

    return query.order_by(model.sequence_index.asc()).all()
