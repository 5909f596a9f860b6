"""Write path for sessions.

Slot lists shown to users are advisory. The checks here run again against fresh
reads, with the professional's profile row locked for the transaction, and are
what actually prevents two bookings from taking the same time.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from backend.core import config as settings
from backend.core.constants import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUSES,
    SESSION_STATUS_CANCELLED,
    SESSION_STATUS_SCHEDULED,
    SESSION_STATUSES,
)
from backend.models.appointment import Appointment
from backend.models.patient import Patient
from backend.models.profile import Profile
from backend.scheduling.errors import (
    InvalidSlotError,
    InvalidStatusError,
    ProviderNotFoundError,
    SlotUnavailableError,
)
from backend.scheduling.slots import SchedulingConfig, format_clock, to_clinic_time
from backend.scheduling.store import resolve_day_slots, scheduling_config_from_profile

logger = logging.getLogger(__name__)


def _lock_profile(db: Session, professional_id: str) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == professional_id).with_for_update().first()
    if profile is None:
        raise ProviderNotFoundError(professional_id)
    return profile


def _claim_slot(
    db: Session,
    professional_id: str,
    scheduling_config: SchedulingConfig,
    scheduled_at: datetime,
    now: datetime,
    duration: int,
    exclude_appointment_id: int | None = None,
) -> datetime:
    start_time = to_clinic_time(scheduled_at, settings.CLINIC_TIMEZONE).replace(second=0, microsecond=0)
    day = start_time.date()
    slots = resolve_day_slots(
        db,
        professional_id,
        scheduling_config,
        day,
        now,
        duration_minutes=duration,
        exclude_appointment_id=exclude_appointment_id,
    )
    slot = next((candidate for candidate in slots if candidate.start_time == start_time.time()), None)

    if slot is None:
        raise InvalidSlotError(f'{format_clock(start_time.time())} on {day.isoformat()} is not a bookable time.')
    if slot.is_past:
        raise InvalidSlotError('Sessions must be scheduled in the future.')
    if slot.is_blocked:
        raise InvalidSlotError('This time is blocked.')
    if slot.is_booked:
        logger.warning(
            'Rejected booking for professional %s at %s: slot already taken',
            professional_id,
            start_time.isoformat(),
        )
        raise SlotUnavailableError()

    return start_time


def book_appointment(
    db: Session,
    professional_id: str,
    patient: Patient,
    scheduled_at: datetime,
    now: datetime,
    *,
    duration_minutes: int | None = None,
    price: int | None = None,
    title: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Create a scheduled session if ``scheduled_at`` is still an open slot.

    Raises ``InvalidSlotError`` when the time is not a slot of the calendar at
    all (outside the day's window, off the slot grid, blocked or already past)
    and ``SlotUnavailableError`` when another session took it. ``price`` wins
    over the patient's and then the professional's session price.
    """
    profile = _lock_profile(db, professional_id)
    scheduling_config = scheduling_config_from_profile(profile)
    duration = duration_minutes or scheduling_config.session_duration_minutes
    start_time = _claim_slot(db, professional_id, scheduling_config, scheduled_at, now, duration)

    if price is None:
        price = patient.session_price or scheduling_config.session_price_minor_units

    appointment = Appointment(
        professional_id=professional_id,
        patient_id=patient.id,
        scheduled_at=start_time,
        duration=duration,
        price=price,
        status=SESSION_STATUS_SCHEDULED,
        payment_status=PAYMENT_STATUS_PENDING,
        title=title or f'Session - {patient.full_name}',
        notes=notes,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    logger.info(
        'Booked session %s for professional %s at %s',
        appointment.id,
        professional_id,
        start_time.isoformat(),
    )
    return appointment


def reschedule_appointment(
    db: Session,
    appointment: Appointment,
    scheduled_at: datetime,
    now: datetime,
) -> Appointment:
    """Move ``appointment`` to ``scheduled_at``, checked like a new booking.

    The session being moved does not count against its own new time.
    """
    if appointment.status != SESSION_STATUS_SCHEDULED:
        raise InvalidStatusError('Only scheduled sessions can be rescheduled.')

    profile = _lock_profile(db, appointment.professional_id)
    scheduling_config = scheduling_config_from_profile(profile)
    duration = appointment.duration or scheduling_config.session_duration_minutes
    start_time = _claim_slot(
        db,
        appointment.professional_id,
        scheduling_config,
        scheduled_at,
        now,
        duration,
        exclude_appointment_id=appointment.id,
    )

    previous = appointment.scheduled_at
    appointment.scheduled_at = start_time
    db.commit()
    db.refresh(appointment)

    logger.info(
        'Rescheduled session %s for professional %s from %s to %s',
        appointment.id,
        appointment.professional_id,
        previous.isoformat(),
        start_time.isoformat(),
    )
    return appointment


def update_appointment_status(db: Session, appointment: Appointment, status: str) -> Appointment:
    """Set the session status; a cancelled session frees its time again."""
    if status not in SESSION_STATUSES:
        raise InvalidStatusError(f'Unknown session status {status!r}.')

    appointment.status = status
    if status == SESSION_STATUS_CANCELLED and appointment.payment_status == PAYMENT_STATUS_PENDING:
        appointment.payment_status = PAYMENT_STATUS_CANCELLED
    db.commit()
    db.refresh(appointment)

    logger.info('Session %s for professional %s is now %s', appointment.id, appointment.professional_id, status)
    return appointment


def update_payment_status(db: Session, appointment: Appointment, payment_status: str) -> Appointment:
    if payment_status not in PAYMENT_STATUSES:
        raise InvalidStatusError(f'Unknown payment status {payment_status!r}.')

    appointment.payment_status = payment_status
    db.commit()
    db.refresh(appointment)

    logger.info('Session %s payment is now %s', appointment.id, payment_status)
    return appointment


def cancel_appointment(db: Session, appointment: Appointment) -> Appointment:
    """Mark ``appointment`` cancelled so its time shows as open again."""
    return update_appointment_status(db, appointment, SESSION_STATUS_CANCELLED)
