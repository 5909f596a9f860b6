"""Unauthenticated booking page of a professional."""

import calendar
import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.database import get_db
from backend.models.patient import Patient
from backend.routes.shared import (
    DayResponse,
    SlotResponse,
    database_unavailable,
    ensure_database_ready,
    get_now,
    scheduling_http_error,
    to_clinic_datetime,
    to_day_responses,
    to_slot_responses,
)
from backend.scheduling.booking import book_appointment
from backend.scheduling.errors import InvalidSlotError, ProviderNotFoundError, SchedulingError
from backend.scheduling.slots import DayAvailability, weekday_index
from backend.scheduling.store import get_profile, list_days, list_slots, scheduling_config_from_profile

logger = logging.getLogger(__name__)

router = APIRouter(tags=['public'])

MAX_PUBLIC_NOTES_LENGTH = 600
MAX_NAME_LENGTH = 120
MAX_PHONE_LENGTH = 40


class PublicProfessionalResponse(BaseModel):
    professional_id: str
    full_name: str | None = None
    specialty: str | None = None
    bio: str | None = None
    session_duration: int
    session_price: int


class PublicBookingRequest(BaseModel):
    full_name: str
    email: str
    phone: str
    notes: str | None = None
    scheduled_at: datetime

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        normalized = ' '.join(value.split())
        if not normalized:
            raise ValueError('Full name is required.')
        if len(normalized) > MAX_NAME_LENGTH:
            raise ValueError(f'Full name must be {MAX_NAME_LENGTH} characters or fewer.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        local_part, _, domain = normalized.partition('@')
        if not local_part or '.' not in domain:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Phone is required.')
        if len(normalized) > MAX_PHONE_LENGTH:
            raise ValueError(f'Phone must be {MAX_PHONE_LENGTH} characters or fewer.')
        return normalized

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        return to_clinic_datetime(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_PUBLIC_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_PUBLIC_NOTES_LENGTH} characters or fewer.')

        return normalized


class PublicBookingResponse(BaseModel):
    session_id: int
    professional_id: str
    scheduled_at: datetime
    duration: int
    price: int
    status: str


def parse_month(value: str) -> date:
    try:
        return datetime.strptime(value, '%Y-%m').date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Month must use the YYYY-MM format.',
        ) from exc


def month_grid_bounds(month_start: date) -> tuple[date, date]:
    """First and last day of the Sunday-to-Saturday weeks covering the month."""
    last_day = calendar.monthrange(month_start.year, month_start.month)[1]
    month_end = month_start.replace(day=last_day)
    grid_start = month_start - timedelta(days=weekday_index(month_start))
    grid_end = month_end + timedelta(days=6 - weekday_index(month_end))
    return grid_start, grid_end


def booking_horizon(now: datetime) -> date:
    return now.date() + timedelta(days=config.PUBLIC_BOOKING_HORIZON_DAYS)


def apply_booking_horizon(days: list[DayAvailability], now: datetime) -> list[DayAvailability]:
    last_bookable_day = booking_horizon(now)
    return [
        DayAvailability(date=day.date, is_selectable=day.is_selectable and day.date <= last_bookable_day)
        for day in days
    ]


def ensure_within_horizon(day: date, now: datetime) -> None:
    if day > booking_horizon(now):
        raise InvalidSlotError(
            f'Online booking is open up to {config.PUBLIC_BOOKING_HORIZON_DAYS} days ahead.'
        )


@router.get('/{professional_id}', response_model=PublicProfessionalResponse)
def get_public_professional(professional_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        profile = get_profile(db, professional_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Professional not found.',
        )

    scheduling_config = scheduling_config_from_profile(profile)
    return PublicProfessionalResponse(
        professional_id=profile.user_id,
        full_name=profile.full_name,
        specialty=profile.specialty,
        bio=profile.bio,
        session_duration=scheduling_config.session_duration_minutes,
        session_price=scheduling_config.session_price_minor_units,
    )


@router.get('/{professional_id}/days', response_model=list[DayResponse])
def list_public_days(
    professional_id: str,
    month: str | None = Query(default=None),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    month_start = parse_month(month) if month else now.date().replace(day=1)
    grid_start, grid_end = month_grid_bounds(month_start)

    ensure_database_ready()

    try:
        days = list_days(db, professional_id, grid_start, grid_end, now)
        return to_day_responses(apply_booking_horizon(days, now))
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{professional_id}/slots', response_model=list[SlotResponse])
def list_public_slots(
    professional_id: str,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        ensure_within_horizon(slot_date, now)

        profile = get_profile(db, professional_id)
        if profile is None:
            raise ProviderNotFoundError(professional_id)

        duration = scheduling_config_from_profile(profile).session_duration_minutes
        slots = list_slots(db, professional_id, slot_date, now)
        return to_slot_responses(slot_date, slots, duration)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post(
    '/{professional_id}/bookings',
    response_model=PublicBookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_public_booking(
    professional_id: str,
    data: PublicBookingRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        ensure_within_horizon(data.scheduled_at.date(), now)

        if get_profile(db, professional_id) is None:
            raise ProviderNotFoundError(professional_id)

        patient = db.query(Patient).filter(
            Patient.professional_id == professional_id,
            Patient.email == data.email,
        ).first()

        if patient is None:
            patient = Patient(
                professional_id=professional_id,
                full_name=data.full_name,
                email=data.email,
                phone=data.phone,
                is_active=True,
            )
            db.add(patient)
            db.flush()
            logger.info('Registered patient %s from public booking for professional %s', patient.id, professional_id)

        notes = 'Public booking'
        if data.notes:
            notes = f'{notes}\nNotes: {data.notes}'

        appointment = book_appointment(
            db,
            professional_id,
            patient,
            data.scheduled_at,
            now,
            title=f'Initial session - {data.full_name}',
            notes=notes,
        )

        return PublicBookingResponse(
            session_id=appointment.id,
            professional_id=appointment.professional_id,
            scheduled_at=appointment.scheduled_at,
            duration=appointment.duration,
            price=appointment.price,
            status=appointment.status,
        )
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
