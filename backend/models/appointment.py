"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from backend.database import Base


class Appointment(Base):
    """Represents a scheduled appointment; recurring series store one row each."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    clinician_id = Column(String, nullable=False, index=True)
    client_group_id = Column(String, nullable=True)
    location_id = Column(String, nullable=True)
    service_id = Column(String, nullable=True)
    title = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_all_day = Column(Boolean, default=False)
    status = Column(String, default="SCHEDULED")
    is_recurring = Column(Boolean, default=False)
    recurring_rule = Column(String, nullable=True)
    series_id = Column(String, nullable=True, index=True)
    sequence_index = Column(Integer, default=0)
