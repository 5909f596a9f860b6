"""Response models and helpers shared by the provider, portal and public routers."""

from datetime import date, datetime, time, timedelta

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import ensure_scheduling_schema
from backend.scheduling.errors import (
    ProviderNotFoundError,
    SchedulingError,
    SlotUnavailableError,
)
from backend.scheduling.slots import DayAvailability, Slot, to_clinic_time

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


class SlotResponse(BaseModel):
    date: date
    time: time
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    status: str
    is_available: bool
    is_past: bool
    is_blocked: bool
    is_booked: bool


class DayResponse(BaseModel):
    date: date
    is_selectable: bool


class SessionResponse(BaseModel):
    id: int
    professional_id: str
    patient_id: int
    scheduled_at: datetime
    duration: int | None = None
    price: int
    status: str
    payment_status: str | None = None
    title: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


def get_now() -> datetime:
    return datetime.now()


def to_clinic_datetime(value: datetime) -> datetime:
    return to_clinic_time(value, config.CLINIC_TIMEZONE)


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ProviderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Professional not found.')
    if isinstance(exc, SlotUnavailableError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def validate_day_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='End date must not be before start date.',
        )

    if (end_date - start_date).days >= config.MAX_DAY_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Date ranges are limited to {config.MAX_DAY_RANGE_DAYS} days.',
        )


def to_day_responses(days: list[DayAvailability]) -> list[DayResponse]:
    return [DayResponse(date=day.date, is_selectable=day.is_selectable) for day in days]


def to_slot_responses(day: date, slots: list[Slot], duration_minutes: int) -> list[SlotResponse]:
    responses: list[SlotResponse] = []

    for slot in slots:
        start_time = datetime.combine(day, slot.start_time)
        responses.append(
            SlotResponse(
                date=day,
                time=slot.start_time,
                duration_minutes=duration_minutes,
                start_time=start_time,
                end_time=start_time + timedelta(minutes=duration_minutes),
                status=slot.status,
                is_available=slot.is_available,
                is_past=slot.is_past,
                is_blocked=slot.is_blocked,
                is_booked=slot.is_booked,
            )
        )

    return responses
