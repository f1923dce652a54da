import logging
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import Appointment
from backend.models.appointment_limit import AppointmentLimit
from backend.models.availability import Availability
from backend.routes.common import (
    DeleteScope,
    ScheduleRequestBase,
    build_occurrences,
    database_unavailable,
    duration_label,
    ensure_database_ready,
    from_db_datetime,
    get_db,
    series_rows,
    to_db_datetime,
)
from backend.scheduling.intervals import Occurrence, TimeInterval
from backend.scheduling.notifications import APPOINTMENTS_CHANGED, LIMITS_CHANGED, ScheduleChange, notifier
from backend.scheduling.reconciler import (
    CANCELLED_STATUS,
    AvailabilityBlock,
    BookedAppointment,
    DailyLimit,
    ReconciliationReason,
    ReconciliationVerdict,
    reconcile_series,
    scheduling_window,
)
from backend.scheduling.recurrence import RecurrenceRule, build
from backend.scheduling.wall_clock import local_date

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_STATUS = 'SCHEDULED'


class CreateAppointmentRequest(ScheduleRequestBase):
    client_group_id: str | None = None
    location_id: str | None = None
    service_id: str | None = None
    title: str | None = None
    require_availability: bool = False


class AppointmentResponse(BaseModel):
    id: int
    clinician_id: str
    client_group_id: str | None = None
    location_id: str | None = None
    service_id: str | None = None
    title: str | None = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool
    status: str
    is_recurring: bool
    recurring_rule: str | None = None
    series_id: str | None = None
    sequence_index: int
    duration: str
    availability_status: str | None = None

    class Config:
        from_attributes = True


class OccurrenceVerdictResponse(BaseModel):
    sequence_index: int
    start_time: datetime
    end_time: datetime
    admitted: bool
    reason: str
    message: str


class SetDailyLimitRequest(BaseModel):
    clinician_id: str
    date: date
    max_limit: int | None = Field(default=None, ge=0)

    @field_validator('clinician_id')
    @classmethod
    def validate_clinician_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinician is required.')
        return normalized


class DailyLimitResponse(BaseModel):
    id: int
    clinician_id: str
    date: date
    max_limit: int | None = None

    class Config:
        from_attributes = True


def to_appointment_response(appointment: Appointment, availability_status: str | None = None) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        clinician_id=appointment.clinician_id,
        client_group_id=appointment.client_group_id,
        location_id=appointment.location_id,
        service_id=appointment.service_id,
        title=appointment.title,
        start_time=from_db_datetime(appointment.start_time),
        end_time=from_db_datetime(appointment.end_time),
        is_all_day=bool(appointment.is_all_day),
        status=appointment.status or DEFAULT_APPOINTMENT_STATUS,
        is_recurring=bool(appointment.is_recurring),
        recurring_rule=appointment.recurring_rule,
        series_id=appointment.series_id,
        sequence_index=appointment.sequence_index or 0,
        duration=duration_label(appointment.start_time, appointment.end_time, appointment.is_all_day),
        availability_status=availability_status,
    )


def load_availability_blocks(db: Session, clinician_id: str, range_start: datetime, range_end: datetime) -> list[AvailabilityBlock]:
    # Stored rows are already expanded, one per occurrence.
    rows = db.query(Availability).filter(
        Availability.clinician_id == clinician_id,
        Availability.start_time < to_db_datetime(range_end),
        Availability.end_time > to_db_datetime(range_start),
    ).all()
    return [
        AvailabilityBlock(
            clinician_id=row.clinician_id,
            interval=TimeInterval(start=row.start_time, end=row.end_time),
            allow_online_requests=bool(row.allow_online_requests),
        )
        for row in rows
        if row.end_time > row.start_time
    ]


def load_booked_appointments(db: Session, clinician_id: str, range_start: datetime, range_end: datetime) -> list[BookedAppointment]:
    rows = db.query(Appointment).filter(
        Appointment.clinician_id == clinician_id,
        Appointment.start_time < to_db_datetime(range_end),
        Appointment.end_time > to_db_datetime(range_start),
        Appointment.status != CANCELLED_STATUS,
    ).all()
    return [
        BookedAppointment(
            clinician_id=row.clinician_id,
            interval=TimeInterval(start=row.start_time, end=row.end_time),
            status=row.status or DEFAULT_APPOINTMENT_STATUS,
        )
        for row in rows
        if row.end_time > row.start_time
    ]


def load_daily_limits(db: Session, clinician_id: str, first_day: date, last_day: date) -> list[DailyLimit]:
    rows = db.query(AppointmentLimit).filter(
        AppointmentLimit.clinician_id == clinician_id,
        AppointmentLimit.date >= first_day,
        AppointmentLimit.date <= last_day,
    ).all()
    return [
        DailyLimit(clinician_id=row.clinician_id, date=row.date, max_appointments=row.max_limit)
        for row in rows
    ]


def reconcile_request(
    data: CreateAppointmentRequest,
    db: Session,
) -> tuple[RecurrenceRule | None, list[tuple[Occurrence, ReconciliationVerdict]]]:
    rule, occurrences = build_occurrences(data)

    # Pad by a day so local-date lookups near midnight see their neighbours.
    range_start = min(occurrence.interval.start for occurrence in occurrences) - timedelta(days=1)
    range_end = max(occurrence.interval.end for occurrence in occurrences) + timedelta(days=1)

    availability = load_availability_blocks(db, data.clinician_id, range_start, range_end)
    booked = load_booked_appointments(db, data.clinician_id, range_start, range_end)
    limits = load_daily_limits(
        db,
        data.clinician_id,
        local_date(range_start, config.DISPLAY_TIMEZONE),
        local_date(range_end, config.DISPLAY_TIMEZONE),
    )

    results = reconcile_series(
        occurrences,
        data.clinician_id,
        availability,
        limits,
        booked,
        tz=config.DISPLAY_TIMEZONE,
        window=scheduling_window(datetime.now(timezone.utc), config.SCHEDULING_HORIZON_DAYS),
    )
    return rule, results


def reject_if_not_admissible(
    results: list[tuple[Occurrence, ReconciliationVerdict]],
    require_availability: bool,
) -> None:
    for occurrence, verdict in results:
        day = local_date(occurrence.interval.start, config.DISPLAY_TIMEZONE).isoformat()

        if verdict.reason is ReconciliationReason.OUTSIDE_WINDOW:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'{verdict.message} ({day})',
            )

        if verdict.reason is ReconciliationReason.LIMIT_REACHED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'{verdict.message} ({day})',
            )

        if verdict.reason is ReconciliationReason.NO_AVAILABILITY and require_availability:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'{verdict.message} ({day})',
            )


@router.post('/check', response_model=list[OccurrenceVerdictResponse])
def check_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        _, results = reconcile_request(data, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        OccurrenceVerdictResponse(
            sequence_index=occurrence.sequence_index,
            start_time=occurrence.interval.start,
            end_time=occurrence.interval.end,
            admitted=verdict.admitted,
            reason=verdict.reason.value,
            message=verdict.message,
        )
        for occurrence, verdict in results
    ]


@router.post('', response_model=list[AppointmentResponse], status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        rule, results = reconcile_request(data, db)
        reject_if_not_admissible(results, data.require_availability)

        series_id = uuid4().hex if rule is not None else None
        recurring_rule = build(rule) if rule is not None else None

        created = []
        for occurrence, verdict in results:
            appointment = Appointment(
                clinician_id=data.clinician_id,
                client_group_id=data.client_group_id,
                location_id=data.location_id,
                service_id=data.service_id,
                title=data.title,
                start_time=to_db_datetime(occurrence.interval.start),
                end_time=to_db_datetime(occurrence.interval.end),
                is_all_day=data.is_all_day,
                status=DEFAULT_APPOINTMENT_STATUS,
                is_recurring=rule is not None,
                recurring_rule=recurring_rule,
                series_id=series_id,
                sequence_index=occurrence.sequence_index,
            )
            created.append((appointment, verdict))

        db.add_all([appointment for appointment, _ in created])
        db.commit()
        for appointment, _ in created:
            db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Created %d appointment(s) for clinician %s', len(created), data.clinician_id)
    notifier.publish(
        ScheduleChange(
            kind=APPOINTMENTS_CHANGED,
            clinician_id=data.clinician_id,
            record_ids=tuple(appointment.id for appointment, _ in created),
        )
    )

    return [to_appointment_response(appointment, verdict.reason.value) for appointment, verdict in created]


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    clinician_id: str = Query(...),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.clinician_id == clinician_id.strip())
        if start is not None:
            query = query.filter(Appointment.end_time > to_db_datetime(start))
        if end is not None:
            query = query.filter(Appointment.start_time < to_db_datetime(end))

        appointments = query.order_by(Appointment.start_time.asc()).all()
        return [to_appointment_response(appointment) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: int,
    scope: DeleteScope = Query(default=DeleteScope.SINGLE),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()

        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found.',
            )

        clinician_id = appointment.clinician_id
        removed = series_rows(db, Appointment, appointment, scope)
        removed_ids = tuple(row.id for row in removed)
        for row in removed:
            db.delete(row)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    notifier.publish(ScheduleChange(kind=APPOINTMENTS_CHANGED, clinician_id=clinician_id, record_ids=removed_ids))


@router.put('/limits', response_model=DailyLimitResponse)
def set_daily_limit(data: SetDailyLimitRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        limit = db.query(AppointmentLimit).filter(
            AppointmentLimit.clinician_id == data.clinician_id,
            AppointmentLimit.date == data.date,
        ).first()

        if limit is None:
            limit = AppointmentLimit(clinician_id=data.clinician_id, date=data.date)
            db.add(limit)

        limit.max_limit = data.max_limit
        db.commit()
        db.refresh(limit)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    notifier.publish(ScheduleChange(kind=LIMITS_CHANGED, clinician_id=data.clinician_id, record_ids=(limit.id,)))
    return limit


@router.get('/limits', response_model=list[DailyLimitResponse])
def list_daily_limits(
    clinician_id: str = Query(...),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(AppointmentLimit).filter(AppointmentLimit.clinician_id == clinician_id.strip())
        if start_date is not None:
            query = query.filter(AppointmentLimit.date >= start_date)
        if end_date is not None:
            query = query.filter(AppointmentLimit.date <= end_date)

        return query.order_by(AppointmentLimit.date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
