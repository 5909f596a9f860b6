from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_professional
from backend.core import config
from backend.core.constants import PAYMENT_STATUSES, SESSION_STATUS_CANCELLED, SESSION_STATUSES
from backend.database import get_db
from backend.models.appointment import Appointment
from backend.models.patient import Patient
from backend.models.profile import Profile
from backend.routes.shared import (
    SessionResponse,
    database_unavailable,
    ensure_database_ready,
    get_now,
    scheduling_http_error,
    to_clinic_datetime,
)
from backend.scheduling.booking import (
    book_appointment,
    cancel_appointment,
    reschedule_appointment,
    update_appointment_status,
    update_payment_status,
)
from backend.scheduling.errors import SchedulingError

router = APIRouter(tags=['sessions'])

MAX_SESSION_NOTES_LENGTH = 2000


class CreateSessionRequest(BaseModel):
    patient_id: int
    scheduled_at: datetime
    duration_minutes: int | None = None
    price: int | None = None
    title: str | None = None
    notes: str | None = None

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        return to_clinic_datetime(value)

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if not 0 < value <= config.MAX_SESSION_DURATION_MINUTES:
            raise ValueError(
                f'Session duration must be between 1 and {config.MAX_SESSION_DURATION_MINUTES} minutes.'
            )
        return value

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError('Price must not be negative.')
        return value

    @field_validator('title', 'notes')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_SESSION_NOTES_LENGTH:
            raise ValueError(f'Text fields must be {MAX_SESSION_NOTES_LENGTH} characters or fewer.')

        return normalized


class RescheduleSessionRequest(BaseModel):
    scheduled_at: datetime

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        return to_clinic_datetime(value)


class SessionStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SESSION_STATUSES:
            raise ValueError(f'Status must be one of: {", ".join(SESSION_STATUSES)}.')
        return normalized


class PaymentStatusRequest(BaseModel):
    payment_status: str

    @field_validator('payment_status')
    @classmethod
    def validate_payment_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PAYMENT_STATUSES:
            raise ValueError(f'Payment status must be one of: {", ".join(PAYMENT_STATUSES)}.')
        return normalized


def get_owned_session(db: Session, session_id: int, professional_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == session_id,
        Appointment.professional_id == professional_id,
    ).first()

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Session not found.',
        )

    return appointment


@router.get('', response_model=list[SessionResponse])
def list_sessions(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    include_cancelled: bool = Query(default=False),
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.professional_id == current_user.user_id)
        if start is not None:
            query = query.filter(Appointment.scheduled_at >= start)
        if end is not None:
            query = query.filter(Appointment.scheduled_at < end)
        if not include_cancelled:
            query = query.filter(Appointment.status != SESSION_STATUS_CANCELLED)

        return query.order_by(Appointment.scheduled_at.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    data: CreateSessionRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        patient = db.query(Patient).filter(
            Patient.id == data.patient_id,
            Patient.professional_id == current_user.user_id,
        ).first()

        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Patient not found.',
            )

        return book_appointment(
            db,
            current_user.user_id,
            patient,
            data.scheduled_at,
            now,
            duration_minutes=data.duration_minutes,
            price=data.price,
            title=data.title,
            notes=data.notes,
        )
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{session_id}/cancel', response_model=SessionResponse)
def cancel_session(
    session_id: int,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_session(db, session_id, current_user.user_id)
        if appointment.status == SESSION_STATUS_CANCELLED:
            return appointment

        return cancel_appointment(db, appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{session_id}', response_model=SessionResponse)
def reschedule_session(
    session_id: int,
    data: RescheduleSessionRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        appointment = get_owned_session(db, session_id, current_user.user_id)
        return reschedule_appointment(db, appointment, data.scheduled_at, now)
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{session_id}/status', response_model=SessionResponse)
def change_session_status(
    session_id: int,
    data: SessionStatusRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_session(db, session_id, current_user.user_id)
        return update_appointment_status(db, appointment, data.status)
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{session_id}/payment-status', response_model=SessionResponse)
def change_payment_status(
    session_id: int,
    data: PaymentStatusRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_session(db, session_id, current_user.user_id)
        return update_payment_status(db, appointment, data.payment_status)
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
