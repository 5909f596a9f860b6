from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_patient
from backend.core.constants import SESSION_STATUS_CANCELLED
from backend.database import get_db
from backend.models.appointment import Appointment
from backend.models.patient import Patient
from backend.routes.shared import (
    DayResponse,
    SessionResponse,
    SlotResponse,
    database_unavailable,
    ensure_database_ready,
    get_now,
    scheduling_http_error,
    to_clinic_datetime,
    to_day_responses,
    to_slot_responses,
    validate_day_range,
)
from backend.scheduling.booking import book_appointment
from backend.scheduling.errors import ProviderNotFoundError, SchedulingError
from backend.scheduling.store import get_provider_scheduling_config, list_days, list_slots

router = APIRouter(tags=['portal'])

PORTAL_WEEK_DAYS = 7


class PortalBookingRequest(BaseModel):
    scheduled_at: datetime

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        return to_clinic_datetime(value)


@router.get('/days', response_model=list[DayResponse])
def list_portal_days(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    start_date = start or now.date()
    end_date = end or start_date + timedelta(days=PORTAL_WEEK_DAYS - 1)
    validate_day_range(start_date, end_date)

    ensure_database_ready()

    try:
        return to_day_responses(list_days(db, patient.professional_id, start_date, end_date, now))
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/slots', response_model=list[SlotResponse])
def list_portal_slots(
    slot_date: date = Query(..., alias='date'),
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        scheduling_config = get_provider_scheduling_config(db, patient.professional_id)
        if scheduling_config is None:
            raise ProviderNotFoundError(patient.professional_id)

        slots = list_slots(db, patient.professional_id, slot_date, now)
        return to_slot_responses(slot_date, slots, scheduling_config.session_duration_minutes)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/bookings', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_portal_booking(
    data: PortalBookingRequest,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        return book_appointment(db, patient.professional_id, patient, data.scheduled_at, now)
    except SchedulingError as exc:
        db.rollback()
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/sessions', response_model=list[SessionResponse])
def list_portal_sessions(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        return db.query(Appointment).filter(
            Appointment.patient_id == patient.id,
            Appointment.status != SESSION_STATUS_CANCELLED,
            Appointment.scheduled_at >= datetime.combine(now.date(), datetime.min.time()),
        ).order_by(Appointment.scheduled_at.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
