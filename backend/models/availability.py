"""Availability model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from backend.database import Base


class Availability(Base):
    """A window in which a clinician can be booked; one row per occurrence."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    clinician_id = Column(String, nullable=False, index=True)
    location_id = Column(String, nullable=True)
    title = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_all_day = Column(Boolean, default=False)
    allow_online_requests = Column(Boolean, default=False)
    is_recurring = Column(Boolean, default=False)
    recurring_rule = Column(String, nullable=True)
    series_id = Column(String, nullable=True, index=True)
    sequence_index = Column(Integer, default=0)
