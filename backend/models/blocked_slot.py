"""Blocked slot model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time
from backend.database import Base


class BlockedSlot(Base):
    """Represents a closure carved out of a specific date."""
    __tablename__ = "blocked_slots"

    id = Column(Integer, primary_key=True)
    professional_id = Column(String, ForeignKey("profiles.user_id"), index=True, nullable=False)
    blocked_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(String)
