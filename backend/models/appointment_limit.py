"""Daily appointment limit model definitions."""

from sqlalchemy import Column, Date, Integer, String, UniqueConstraint
from backend.database import Base


class AppointmentLimit(Base):
    """Admin-set cap on appointments per clinician and day. NULL means unlimited."""
    __tablename__ = "appointment_limits"
    __table_args__ = (UniqueConstraint("clinician_id", "date", name="uq_appointment_limits_clinician_date"),)

    id = Column(Integer, primary_key=True)
    clinician_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    max_limit = Column(Integer, nullable=True)
