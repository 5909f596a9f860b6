import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.availability import ProfessionalAvailability  # noqa: E402
from backend.models.patient import Patient  # noqa: E402
from backend.models.profile import Profile  # noqa: E402

PROFESSIONAL_ID = 'pro-1'
PATIENT_USER_ID = 'patient-user-1'


@pytest.fixture(autouse=True)
def skip_schema_upgrade(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.database._scheduling_schema_checked', True)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def professional(db) -> Profile:
    profile = Profile(
        user_id=PROFESSIONAL_ID,
        email='dr.silva@example.com',
        full_name='Dr. Ana Silva',
        session_duration=50,
        session_price=15000,
        buffer_between_sessions=10,
        allow_parallel_sessions=False,
    )
    db.add(profile)
    db.add(
        ProfessionalAvailability(
            professional_id=PROFESSIONAL_ID,
            day_of_week=1,
            start_time=time(9, 0),
            end_time=time(12, 0),
            is_active=True,
        )
    )
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def patient(db, professional) -> Patient:
    record = Patient(
        professional_id=professional.user_id,
        user_id=PATIENT_USER_ID,
        full_name='Bruno Costa',
        email='bruno@example.com',
        is_active=True,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
