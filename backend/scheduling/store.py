"""Read queries feeding the slot resolver, and the shared ``list_slots`` entry point."""

from datetime import date, datetime, time, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.core import config as settings
from backend.core.constants import SESSION_STATUS_CANCELLED
from backend.models.appointment import Appointment
from backend.models.availability import ProfessionalAvailability
from backend.models.blocked_slot import BlockedSlot
from backend.models.profile import Profile
from backend.scheduling.errors import ProviderNotFoundError
from backend.scheduling.slots import (
    AvailabilityRule,
    BlockedInterval,
    BookedAppointment,
    DayAvailability,
    SchedulingConfig,
    Slot,
    list_day_availability,
    resolve_slots,
)

# Sessions starting this long before midnight can still overlap the next day.
APPOINTMENT_LOOKBACK = timedelta(
    minutes=settings.MAX_SESSION_DURATION_MINUTES + settings.MAX_BUFFER_MINUTES
)


def get_profile(db: Session, professional_id: str) -> Profile | None:
    return db.query(Profile).filter(Profile.user_id == professional_id).first()


def scheduling_config_from_profile(profile: Profile) -> SchedulingConfig:
    return SchedulingConfig(
        session_duration_minutes=profile.session_duration or settings.DEFAULT_SESSION_DURATION_MINUTES,
        session_price_minor_units=profile.session_price or 0,
        allow_parallel_sessions=bool(profile.allow_parallel_sessions),
        buffer_between_sessions_minutes=profile.buffer_between_sessions or 0,
    )


def get_provider_scheduling_config(db: Session, professional_id: str) -> SchedulingConfig | None:
    profile = get_profile(db, professional_id)
    if profile is None:
        return None
    return scheduling_config_from_profile(profile)


def get_active_availability(db: Session, professional_id: str) -> list[AvailabilityRule]:
    rows = db.query(ProfessionalAvailability).filter(
        ProfessionalAvailability.professional_id == professional_id,
        ProfessionalAvailability.is_active.is_(True),
    ).order_by(
        ProfessionalAvailability.day_of_week.asc(),
        ProfessionalAvailability.start_time.asc(),
    ).all()

    return [AvailabilityRule.model_validate(row) for row in rows]


def get_blocked_intervals(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date,
) -> list[BlockedInterval]:
    """Blocked intervals with ``start_date <= blocked_date < end_date``."""
    rows = db.query(BlockedSlot).filter(
        BlockedSlot.professional_id == professional_id,
        BlockedSlot.blocked_date >= start_date,
        BlockedSlot.blocked_date < end_date,
    ).order_by(BlockedSlot.blocked_date.asc(), BlockedSlot.start_time.asc()).all()

    return [BlockedInterval.model_validate(row) for row in rows]


def get_non_cancelled_appointments(
    db: Session,
    professional_id: str,
    range_start: datetime,
    range_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[BookedAppointment]:
    """Appointments that still hold their time, with ``range_start <= scheduled_at < range_end``.

    ``exclude_appointment_id`` leaves out a session that is being moved.
    """
    query = db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        or_(Appointment.status.is_(None), Appointment.status != SESSION_STATUS_CANCELLED),
        Appointment.scheduled_at >= range_start,
        Appointment.scheduled_at < range_end,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    rows = query.order_by(Appointment.scheduled_at.asc()).all()

    return [BookedAppointment.model_validate(row) for row in rows]


def resolve_day_slots(
    db: Session,
    professional_id: str,
    scheduling_config: SchedulingConfig,
    day: date,
    now: datetime,
    duration_minutes: int | None = None,
    exclude_appointment_id: int | None = None,
) -> list[Slot]:
    rules = get_active_availability(db, professional_id)
    next_day = day + timedelta(days=1)
    blocked_intervals = get_blocked_intervals(db, professional_id, day, next_day)
    appointments = get_non_cancelled_appointments(
        db,
        professional_id,
        datetime.combine(day, time.min) - APPOINTMENT_LOOKBACK,
        datetime.combine(next_day, time.min),
        exclude_appointment_id=exclude_appointment_id,
    )

    return resolve_slots(
        day,
        rules,
        blocked_intervals,
        appointments,
        scheduling_config,
        now,
        duration_minutes=duration_minutes,
    )


def list_slots(
    db: Session,
    professional_id: str,
    day: date,
    now: datetime,
    duration_minutes: int | None = None,
) -> list[Slot]:
    """Slots of ``day`` for one professional; the one call every booking screen makes."""
    scheduling_config = get_provider_scheduling_config(db, professional_id)
    if scheduling_config is None:
        raise ProviderNotFoundError(professional_id)

    return resolve_day_slots(db, professional_id, scheduling_config, day, now, duration_minutes)


def list_days(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date,
    now: datetime,
) -> list[DayAvailability]:
    if get_profile(db, professional_id) is None:
        raise ProviderNotFoundError(professional_id)

    return list_day_availability(start_date, end_date, get_active_availability(db, professional_id), now)
