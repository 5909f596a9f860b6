"""Patient model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from backend.database import Base


class Patient(Base):
    """Represents a patient record owned by one professional."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    professional_id = Column(String, ForeignKey("profiles.user_id"), index=True, nullable=False)
    user_id = Column(String, unique=True, index=True)  # portal login, if any
    full_name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
    session_price = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
