"""Slot resolution shared by the provider, patient portal and public booking screens.

Every function in this module is pure. Callers fetch the professional's weekly
rules, the blocked intervals and the booked appointments, then pass them in
together with a reference ``now``; nothing here reads the clock or a database.

Rule windows and blocked intervals are compared as minute offsets from
midnight, booked sessions as datetimes. Every overlap test uses half-open
intervals ``[start, end)``. All datetimes are naive clinic wall-clock times.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from backend.core.config import DEFAULT_SESSION_DURATION_MINUTES
from backend.core.constants import SESSION_STATUS_CANCELLED, SESSION_STATUS_SCHEDULED

SLOT_STATUS_AVAILABLE = 'available'
SLOT_STATUS_PAST = 'past'
SLOT_STATUS_BLOCKED = 'blocked'
SLOT_STATUS_BOOKED = 'booked'


class AvailabilityRule(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True

    class Config:
        from_attributes = True


class BlockedInterval(BaseModel):
    blocked_date: date
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class BookedAppointment(BaseModel):
    scheduled_at: datetime
    duration: int | None = None
    status: str | None = SESSION_STATUS_SCHEDULED

    class Config:
        from_attributes = True


class SchedulingConfig(BaseModel):
    session_duration_minutes: int = Field(default=DEFAULT_SESSION_DURATION_MINUTES, gt=0)
    session_price_minor_units: int = Field(default=0, ge=0)
    allow_parallel_sessions: bool = False
    buffer_between_sessions_minutes: int = Field(default=0, ge=0)


class Slot(BaseModel):
    start_time: time
    is_past: bool = False
    is_blocked: bool = False
    is_booked: bool = False

    @property
    def is_available(self) -> bool:
        return not (self.is_past or self.is_blocked or self.is_booked)

    @property
    def status(self) -> str:
        if self.is_past:
            return SLOT_STATUS_PAST
        if self.is_blocked:
            return SLOT_STATUS_BLOCKED
        if self.is_booked:
            return SLOT_STATUS_BOOKED
        return SLOT_STATUS_AVAILABLE


class DayAvailability(BaseModel):
    date: date
    is_selectable: bool


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def parse_clock(value: str) -> time:
    """Parse ``HH:MM`` (or the ``HH:MM:SS`` form Postgres returns) into a time.

    Only the hour and minute are kept.
    """
    parts = value.strip().split(':')
    if len(parts) not in (2, 3) or not all(part.isdigit() and len(part) == 2 for part in parts):
        raise ValueError(f'Invalid time {value!r}; expected HH:MM.')

    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f'Invalid time {value!r}; expected HH:MM.')

    return time(hour, minute)


def format_clock(value: time) -> str:
    return value.strftime('%H:%M')


def to_clinic_time(value: datetime, clinic_timezone: str) -> datetime:
    """Naive clinic wall-clock time for ``value``.

    Naive values are taken as clinic time already; aware ones (an ISO string
    ending in ``Z``, say) are converted first.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(clinic_timezone)).replace(tzinfo=None)


def weekday_index(day: date) -> int:
    """Weekday of ``day`` with Sunday as 0, the convention rules are stored in."""
    return (day.weekday() + 1) % 7


def find_day_rule(rules: Iterable[AvailabilityRule] | None, day: date) -> AvailabilityRule | None:
    """Return the active rule for the weekday of ``day``.

    Several active rules for the same weekday are not merged: the one opening
    earliest wins.
    """
    weekday = weekday_index(day)
    candidates = [rule for rule in rules or () if rule.is_active and rule.day_of_week == weekday]
    if not candidates:
        return None
    return min(candidates, key=lambda rule: (rule.start_time, rule.end_time))


def generate_slot_times(
    start_time: time,
    end_time: time,
    duration_minutes: int,
    buffer_minutes: int = 0,
) -> list[time]:
    """Candidate start times inside ``[start_time, end_time)``.

    The cursor advances by ``duration_minutes + buffer_minutes`` and a start is
    kept only if the whole session fits before ``end_time``; a trailing partial
    slot is dropped.
    """
    if duration_minutes <= 0:
        raise ValueError('duration_minutes must be positive.')
    if buffer_minutes < 0:
        raise ValueError('buffer_minutes must not be negative.')

    window_end = to_minutes(end_time)
    step = duration_minutes + buffer_minutes
    cursor = to_minutes(start_time)
    slot_times: list[time] = []

    while cursor + duration_minutes <= window_end:
        slot_times.append(from_minutes(cursor))
        cursor += step

    return slot_times


def is_slot_blocked(day: date, slot_start: time, blocked_intervals: Iterable[BlockedInterval] | None) -> bool:
    slot_minutes = to_minutes(slot_start)

    return any(
        block.blocked_date == day
        and to_minutes(block.start_time) <= slot_minutes < to_minutes(block.end_time)
        for block in blocked_intervals or ()
    )


def is_slot_booked(
    day: date,
    slot_start: time,
    duration_minutes: int,
    appointments: Iterable[BookedAppointment] | None,
    buffer_minutes: int = 0,
    allow_parallel_sessions: bool = False,
) -> bool:
    """Whether ``[slot_start, slot_start + duration)`` collides with a booked session.

    The buffer extends the end of the existing appointment only, so a new
    session may start exactly ``buffer_minutes`` after a booked one ends.
    Appointments without a stored duration are assumed to last
    ``duration_minutes``. Intervals are compared as datetimes, so a session
    that started the evening before still holds the first minutes of ``day``.
    """
    if allow_parallel_sessions:
        return False

    slot_start_at = datetime.combine(day, slot_start)
    slot_end_at = slot_start_at + timedelta(minutes=duration_minutes)

    for appointment in appointments or ():
        if appointment.status == SESSION_STATUS_CANCELLED:
            continue

        booked_start = appointment.scheduled_at
        booked_end = booked_start + timedelta(
            minutes=(appointment.duration or duration_minutes) + buffer_minutes
        )

        if slot_start_at < booked_end and slot_end_at > booked_start:
            return True

    return False


def is_slot_past(day: date, slot_start: time, now: datetime) -> bool:
    return datetime.combine(day, slot_start) <= now


def is_day_selectable(day: date, rules: Iterable[AvailabilityRule] | None, now: datetime) -> bool:
    if day < now.date():
        return False
    return find_day_rule(rules, day) is not None


def list_day_availability(
    start_date: date,
    end_date: date,
    rules: Iterable[AvailabilityRule] | None,
    now: datetime,
) -> list[DayAvailability]:
    """Evaluate the day gate for every date of ``[start_date, end_date]``."""
    rules = list(rules or ())
    days: list[DayAvailability] = []
    current_day = start_date

    while current_day <= end_date:
        days.append(DayAvailability(date=current_day, is_selectable=is_day_selectable(current_day, rules, now)))
        current_day += timedelta(days=1)

    return days


def resolve_slots(
    day: date,
    rules: Iterable[AvailabilityRule] | None,
    blocked_intervals: Iterable[BlockedInterval] | None,
    appointments: Iterable[BookedAppointment] | None,
    config: SchedulingConfig | None,
    now: datetime,
    duration_minutes: int | None = None,
) -> list[Slot]:
    """Ordered candidate slots for ``day``, each tagged past/blocked/booked.

    ``None`` for any collection means it has not been loaded and counts as
    empty. A weekday without an active rule yields an empty list.
    """
    rule = find_day_rule(rules, day)
    if rule is None:
        return []

    config = config or SchedulingConfig()
    duration = duration_minutes or config.session_duration_minutes
    buffer_minutes = config.buffer_between_sessions_minutes

    day_blocks = [block for block in blocked_intervals or () if block.blocked_date == day]
    day_appointments = list(appointments or ())

    return [
        Slot(
            start_time=slot_start,
            is_past=is_slot_past(day, slot_start, now),
            is_blocked=is_slot_blocked(day, slot_start, day_blocks),
            is_booked=is_slot_booked(
                day,
                slot_start,
                duration,
                day_appointments,
                buffer_minutes=buffer_minutes,
                allow_parallel_sessions=config.allow_parallel_sessions,
            ),
        )
        for slot_start in generate_slot_times(rule.start_time, rule.end_time, duration, buffer_minutes)
    ]
