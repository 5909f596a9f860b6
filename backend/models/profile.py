"""Professional profile model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from backend.core.constants import ROLE_PROFESSIONAL
from backend.database import Base


class Profile(Base):
    """Represents a professional whose calendar patients book into."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String, default=ROLE_PROFESSIONAL)  # professional/admin
    specialty = Column(String)
    bio = Column(String)
    session_duration = Column(Integer)
    session_price = Column(Integer)  # minor units
    allow_parallel_sessions = Column(Boolean, nullable=False, default=False)
    buffer_between_sessions = Column(Integer, nullable=False, default=0)
