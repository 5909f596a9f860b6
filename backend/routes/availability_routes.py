from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_professional
from backend.core import config
from backend.database import get_db
from backend.models.availability import ProfessionalAvailability
from backend.models.blocked_slot import BlockedSlot
from backend.models.profile import Profile
from backend.routes.shared import (
    DayResponse,
    SlotResponse,
    database_unavailable,
    ensure_database_ready,
    get_now,
    scheduling_http_error,
    to_day_responses,
    to_slot_responses,
    validate_day_range,
)
from backend.scheduling.errors import SchedulingError
from backend.scheduling.slots import parse_clock
from backend.scheduling.store import list_days, list_slots, scheduling_config_from_profile

router = APIRouter(tags=['availability'])

MAX_BLOCK_REASON_LENGTH = 200
DEFAULT_DAY_RANGE_DAYS = 7


def _coerce_clock(value):
    if isinstance(value, str):
        return parse_clock(value)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return value


class AvailabilityRuleRequest(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_clock(cls, value):
        return _coerce_clock(value)

    @model_validator(mode='after')
    def validate_window(self) -> 'AvailabilityRuleRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class ReplaceAvailabilityRequest(BaseModel):
    rules: list[AvailabilityRuleRequest]

    @field_validator('rules')
    @classmethod
    def validate_one_rule_per_day(cls, value: list[AvailabilityRuleRequest]) -> list[AvailabilityRuleRequest]:
        active_days = [rule.day_of_week for rule in value if rule.is_active]
        if len(active_days) != len(set(active_days)):
            raise ValueError('Only one active window per day of week is supported.')
        return value


class AvailabilityRuleResponse(BaseModel):
    id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool

    class Config:
        from_attributes = True


class SchedulingConfigRequest(BaseModel):
    session_duration: int
    session_price: int = 0
    allow_parallel_sessions: bool = False
    buffer_between_sessions: int = 0

    @field_validator('session_duration')
    @classmethod
    def validate_session_duration(cls, value: int) -> int:
        if not 0 < value <= config.MAX_SESSION_DURATION_MINUTES:
            raise ValueError(
                f'Session duration must be between 1 and {config.MAX_SESSION_DURATION_MINUTES} minutes.'
            )
        return value

    @field_validator('session_price')
    @classmethod
    def validate_session_price(cls, value: int) -> int:
        if value < 0:
            raise ValueError('Session price must not be negative.')
        return value

    @field_validator('buffer_between_sessions')
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if not 0 <= value <= config.MAX_BUFFER_MINUTES:
            raise ValueError(f'Buffer must be between 0 and {config.MAX_BUFFER_MINUTES} minutes.')
        return value


class SchedulingConfigResponse(BaseModel):
    session_duration: int
    session_price: int
    allow_parallel_sessions: bool
    buffer_between_sessions: int


class CreateBlockedSlotRequest(BaseModel):
    blocked_date: date
    start_time: time
    end_time: time
    reason: str | None = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_clock(cls, value):
        return _coerce_clock(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BLOCK_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_BLOCK_REASON_LENGTH} characters or fewer.')

        return normalized

    @model_validator(mode='after')
    def validate_window(self) -> 'CreateBlockedSlotRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class BlockedSlotResponse(BaseModel):
    id: int
    blocked_date: date
    start_time: time
    end_time: time
    reason: str | None = None

    class Config:
        from_attributes = True


def build_config_response(profile: Profile) -> SchedulingConfigResponse:
    scheduling_config = scheduling_config_from_profile(profile)
    return SchedulingConfigResponse(
        session_duration=scheduling_config.session_duration_minutes,
        session_price=scheduling_config.session_price_minor_units,
        allow_parallel_sessions=scheduling_config.allow_parallel_sessions,
        buffer_between_sessions=scheduling_config.buffer_between_sessions_minutes,
    )


@router.get('/rules', response_model=list[AvailabilityRuleResponse])
def list_availability_rules(
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(ProfessionalAvailability).filter(
            ProfessionalAvailability.professional_id == current_user.user_id,
        ).order_by(
            ProfessionalAvailability.day_of_week.asc(),
            ProfessionalAvailability.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/rules', response_model=list[AvailabilityRuleResponse])
def replace_availability_rules(
    data: ReplaceAvailabilityRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        db.query(ProfessionalAvailability).filter(
            ProfessionalAvailability.professional_id == current_user.user_id,
        ).delete(synchronize_session=False)

        rules = [
            ProfessionalAvailability(
                professional_id=current_user.user_id,
                day_of_week=rule.day_of_week,
                start_time=rule.start_time,
                end_time=rule.end_time,
                is_active=True,
            )
            for rule in sorted(data.rules, key=lambda rule: rule.day_of_week)
            if rule.is_active
        ]
        db.add_all(rules)
        db.commit()

        for rule in rules:
            db.refresh(rule)

        return rules
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/config', response_model=SchedulingConfigResponse)
def get_scheduling_config(current_user: Profile = Depends(get_current_professional)):
    return build_config_response(current_user)


@router.put('/config', response_model=SchedulingConfigResponse)
def update_scheduling_config(
    data: SchedulingConfigRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        current_user.session_duration = data.session_duration
        current_user.session_price = data.session_price
        current_user.allow_parallel_sessions = data.allow_parallel_sessions
        current_user.buffer_between_sessions = data.buffer_between_sessions
        db.commit()
        db.refresh(current_user)

        return build_config_response(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/blocked-slots', response_model=list[BlockedSlotResponse])
def list_blocked_slots(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        query = db.query(BlockedSlot).filter(
            BlockedSlot.professional_id == current_user.user_id,
            BlockedSlot.blocked_date >= (start or now.date()),
        )
        if end is not None:
            query = query.filter(BlockedSlot.blocked_date <= end)

        return query.order_by(BlockedSlot.blocked_date.asc(), BlockedSlot.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/blocked-slots', response_model=BlockedSlotResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_slot(
    data: CreateBlockedSlotRequest,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if data.blocked_date < now.date():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Blocked times cannot be in the past.',
        )

    ensure_database_ready()

    try:
        blocked_slot = BlockedSlot(
            professional_id=current_user.user_id,
            blocked_date=data.blocked_date,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        db.add(blocked_slot)
        db.commit()
        db.refresh(blocked_slot)

        return blocked_slot
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/blocked-slots/{blocked_slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_slot(
    blocked_slot_id: int,
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        blocked_slot = db.query(BlockedSlot).filter(
            BlockedSlot.id == blocked_slot_id,
            BlockedSlot.professional_id == current_user.user_id,
        ).first()

        if not blocked_slot:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Blocked time not found.',
            )

        db.delete(blocked_slot)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/days', response_model=list[DayResponse])
def list_available_days(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    start_date = start or now.date()
    end_date = end or start_date + timedelta(days=DEFAULT_DAY_RANGE_DAYS - 1)
    validate_day_range(start_date, end_date)

    ensure_database_ready()

    try:
        return to_day_responses(list_days(db, current_user.user_id, start_date, end_date, now))
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/slots', response_model=list[SlotResponse])
def list_available_slots(
    slot_date: date = Query(..., alias='date'),
    duration_minutes: int | None = Query(default=None, ge=1, le=config.MAX_SESSION_DURATION_MINUTES),
    current_user: Profile = Depends(get_current_professional),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        duration = duration_minutes or scheduling_config_from_profile(current_user).session_duration_minutes
        slots = list_slots(db, current_user.user_id, slot_date, now, duration_minutes=duration)

        return to_slot_responses(slot_date, slots, duration)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
