"""Appointment model definitions."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, String
from backend.core.constants import PAYMENT_STATUS_PENDING, SESSION_STATUS_SCHEDULED
from backend.database import Base


class Appointment(Base):
    """Represents a session booked between a professional and a patient."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    professional_id = Column(String, ForeignKey("profiles.user_id"), index=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    duration = Column(Integer)
    price = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=SESSION_STATUS_SCHEDULED)
    payment_status = Column(String, default=PAYMENT_STATUS_PENDING)
    title = Column(String)
    notes = Column(String)
