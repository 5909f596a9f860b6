"""Availability model definitions."""

from sqlalchemy import Column, Integer, Time, Boolean, ForeignKey, String
from backend.database import Base


class ProfessionalAvailability(Base):
    """Weekly opening window of a professional for one weekday (0=Sunday)."""
    __tablename__ = "professional_availability"

    id = Column(Integer, primary_key=True)
    professional_id = Column(String, ForeignKey("profiles.user_id"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
