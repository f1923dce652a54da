import logging
from datetime import datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

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
from backend.scheduling.notifications import AVAILABILITY_CHANGED, ScheduleChange, notifier
from backend.scheduling.recurrence import build

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class CreateAvailabilityRequest(ScheduleRequestBase):
    location_id: str | None = None
    title: str | None = None
    allow_online_requests: bool = False


class AvailabilityResponse(BaseModel):
    id: int
    clinician_id: str
    location_id: str | None = None
    title: str | None = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool
    allow_online_requests: bool
    is_recurring: bool
    recurring_rule: str | None = None
    series_id: str | None = None
    sequence_index: int
    duration: str

    class Config:
        from_attributes = True


def to_availability_response(availability: Availability) -> AvailabilityResponse:
    return AvailabilityResponse(
        id=availability.id,
        clinician_id=availability.clinician_id,
        location_id=availability.location_id,
        title=availability.title,
        start_time=from_db_datetime(availability.start_time),
        end_time=from_db_datetime(availability.end_time),
        is_all_day=bool(availability.is_all_day),
        allow_online_requests=bool(availability.allow_online_requests),
        is_recurring=bool(availability.is_recurring),
        recurring_rule=availability.recurring_rule,
        series_id=availability.series_id,
        sequence_index=availability.sequence_index or 0,
        duration=duration_label(availability.start_time, availability.end_time, availability.is_all_day),
    )


@router.post('', response_model=list[AvailabilityResponse], status_code=status.HTTP_201_CREATED)
def create_availability(data: CreateAvailabilityRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    rule, occurrences = build_occurrences(data)

    series_id = uuid4().hex if rule is not None else None
    recurring_rule = build(rule) if rule is not None else None

    try:
        created = [
            Availability(
                clinician_id=data.clinician_id,
                location_id=data.location_id,
                title=data.title,
                start_time=to_db_datetime(occurrence.interval.start),
                end_time=to_db_datetime(occurrence.interval.end),
                is_all_day=data.is_all_day,
                allow_online_requests=data.allow_online_requests,
                is_recurring=rule is not None,
                recurring_rule=recurring_rule,
                series_id=series_id,
                sequence_index=occurrence.sequence_index,
            )
            for occurrence in occurrences
        ]

        db.add_all(created)
        db.commit()
        for availability in created:
            db.refresh(availability)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Created %d availability block(s) for clinician %s', len(created), data.clinician_id)
    notifier.publish(
        ScheduleChange(
            kind=AVAILABILITY_CHANGED,
            clinician_id=data.clinician_id,
            record_ids=tuple(availability.id for availability in created),
        )
    )

    return [to_availability_response(availability) for availability in created]


@router.get('', response_model=list[AvailabilityResponse])
def list_availability(
    clinician_id: str = Query(...),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Availability).filter(Availability.clinician_id == clinician_id.strip())
        if start is not None:
            query = query.filter(Availability.end_time > to_db_datetime(start))
        if end is not None:
            query = query.filter(Availability.start_time < to_db_datetime(end))

        blocks = query.order_by(Availability.start_time.asc()).all()
        return [to_availability_response(block) for block in blocks]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/{availability_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_availability(
    availability_id: int,
    scope: DeleteScope = Query(default=DeleteScope.SINGLE),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability = db.query(Availability).filter(Availability.id == availability_id).first()

        if not availability:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability not found.',
            )

        clinician_id = availability.clinician_id
        removed = series_rows(db, Availability, availability, scope)
        removed_ids = tuple(row.id for row in removed)
        for row in removed:
            db.delete(row)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    notifier.publish(ScheduleChange(kind=AVAILABILITY_CHANGED, clinician_id=clinician_id, record_ids=removed_ids))
