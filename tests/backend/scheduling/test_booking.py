from datetime import date, datetime, time, timedelta, timezone

import pytest

from backend.models.appointment import Appointment
from backend.models.blocked_slot import BlockedSlot
from backend.models.availability import ProfessionalAvailability
from backend.scheduling.booking import (
    book_appointment,
    cancel_appointment,
    reschedule_appointment,
    update_appointment_status,
    update_payment_status,
)
from backend.scheduling.errors import (
    InvalidSlotError,
    InvalidStatusError,
    ProviderNotFoundError,
    SlotUnavailableError,
)
from backend.scheduling.store import (
    get_blocked_intervals,
    get_non_cancelled_appointments,
    get_provider_scheduling_config,
    list_days,
    list_slots,
)

MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 4, 12, 0)


def test_get_provider_scheduling_config_reads_profile(db, professional) -> None:
    scheduling_config = get_provider_scheduling_config(db, 'pro-1')

    assert scheduling_config.session_duration_minutes == 50
    assert scheduling_config.session_price_minor_units == 15000
    assert scheduling_config.buffer_between_sessions_minutes == 10
    assert scheduling_config.allow_parallel_sessions is False


def test_get_provider_scheduling_config_defaults_missing_duration(db, professional) -> None:
    professional.session_duration = None
    professional.session_price = None
    db.commit()

    scheduling_config = get_provider_scheduling_config(db, 'pro-1')

    assert scheduling_config.session_duration_minutes == 50
    assert scheduling_config.session_price_minor_units == 0


def test_get_provider_scheduling_config_returns_none_for_unknown_professional(db) -> None:
    assert get_provider_scheduling_config(db, 'missing') is None


def test_get_blocked_intervals_end_date_is_exclusive(db, professional) -> None:
    db.add_all([
        BlockedSlot(professional_id='pro-1', blocked_date=MONDAY, start_time=time(9, 0), end_time=time(10, 0)),
        BlockedSlot(
            professional_id='pro-1',
            blocked_date=date(2026, 1, 6),
            start_time=time(9, 0),
            end_time=time(10, 0),
        ),
    ])
    db.commit()

    intervals = get_blocked_intervals(db, 'pro-1', MONDAY, date(2026, 1, 6))

    assert [interval.blocked_date for interval in intervals] == [MONDAY]


def test_get_non_cancelled_appointments_skips_cancelled(db, patient) -> None:
    db.add_all([
        Appointment(
            professional_id='pro-1',
            patient_id=patient.id,
            scheduled_at=datetime(2026, 1, 5, 9, 0),
            duration=50,
            status='scheduled',
        ),
        Appointment(
            professional_id='pro-1',
            patient_id=patient.id,
            scheduled_at=datetime(2026, 1, 5, 10, 0),
            duration=50,
            status='cancelled',
        ),
        Appointment(
            professional_id='pro-1',
            patient_id=patient.id,
            scheduled_at=datetime(2026, 1, 5, 11, 0),
            duration=50,
            status='completed',
        ),
    ])
    db.commit()

    appointments = get_non_cancelled_appointments(
        db,
        'pro-1',
        datetime(2026, 1, 5, 0, 0),
        datetime(2026, 1, 6, 0, 0),
    )

    assert [appointment.scheduled_at for appointment in appointments] == [
        datetime(2026, 1, 5, 9, 0),
        datetime(2026, 1, 5, 11, 0),
    ]


def test_list_slots_combines_the_three_stores(db, patient) -> None:
    db.add(BlockedSlot(professional_id='pro-1', blocked_date=MONDAY, start_time=time(11, 0), end_time=time(11, 30)))
    db.add(
        Appointment(
            professional_id='pro-1',
            patient_id=patient.id,
            scheduled_at=datetime(2026, 1, 5, 9, 0),
            duration=50,
            status='scheduled',
        )
    )
    db.commit()

    slots = list_slots(db, 'pro-1', MONDAY, NOW)

    assert [(slot.start_time, slot.status) for slot in slots] == [
        (time(9, 0), 'booked'),
        (time(10, 0), 'available'),
        (time(11, 0), 'blocked'),
    ]


def test_list_slots_raises_for_unknown_professional(db) -> None:
    with pytest.raises(ProviderNotFoundError):
        list_slots(db, 'missing', MONDAY, NOW)


def test_list_days_marks_only_available_weekdays(db, professional) -> None:
    days = list_days(db, 'pro-1', date(2026, 1, 4), date(2026, 1, 10), NOW)

    assert [day.date for day in days if day.is_selectable] == [MONDAY]


def test_book_appointment_creates_scheduled_session(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    assert appointment.id is not None
    assert appointment.status == 'scheduled'
    assert appointment.payment_status == 'pending'
    assert appointment.duration == 50
    assert appointment.price == 15000
    assert appointment.title == 'Session - Bruno Costa'


def test_book_appointment_prefers_patient_price(db, patient) -> None:
    patient.session_price = 9000
    db.commit()

    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    assert appointment.price == 9000


def test_book_appointment_rejects_taken_slot(db, patient) -> None:
    book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    with pytest.raises(SlotUnavailableError) as exception_info:
        book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    assert str(exception_info.value) == 'This time slot is no longer available.'


def test_book_appointment_accepts_slot_right_after_buffer(db, patient) -> None:
    book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    assert appointment.scheduled_at == datetime(2026, 1, 5, 10, 0)


def test_book_appointment_allows_double_booking_with_parallel_sessions(db, professional, patient) -> None:
    professional.allow_parallel_sessions = True
    db.commit()

    book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)
    book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    assert db.query(Appointment).count() == 2


@pytest.mark.parametrize(
    'scheduled_at',
    [
        datetime(2026, 1, 5, 9, 30),
        datetime(2026, 1, 5, 12, 0),
        datetime(2026, 1, 6, 9, 0),
    ],
)
def test_book_appointment_rejects_times_outside_the_slot_grid(db, patient, scheduled_at: datetime) -> None:
    with pytest.raises(InvalidSlotError):
        book_appointment(db, 'pro-1', patient, scheduled_at, NOW)


def test_book_appointment_rejects_blocked_slot(db, patient) -> None:
    db.add(BlockedSlot(professional_id='pro-1', blocked_date=MONDAY, start_time=time(10, 0), end_time=time(10, 30)))
    db.commit()

    with pytest.raises(InvalidSlotError) as exception_info:
        book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    assert str(exception_info.value) == 'This time is blocked.'


def test_book_appointment_rejects_past_slot(db, patient) -> None:
    with pytest.raises(InvalidSlotError) as exception_info:
        book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 30))

    assert str(exception_info.value) == 'Sessions must be scheduled in the future.'


def test_cancel_appointment_reopens_slot(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)
    assert list_slots(db, 'pro-1', MONDAY, NOW)[1].is_booked

    cancel_appointment(db, appointment)

    assert appointment.status == 'cancelled'
    assert list_slots(db, 'pro-1', MONDAY, NOW)[1].is_available


def test_book_appointment_rejects_overlap_with_session_from_previous_evening(db, patient) -> None:
    db.query(ProfessionalAvailability).update({'start_time': time(0, 0), 'end_time': time(2, 0)})
    db.add(
        Appointment(
            professional_id='pro-1',
            patient_id=patient.id,
            scheduled_at=datetime(2026, 1, 4, 23, 30),
            duration=60,
            status='scheduled',
        )
    )
    db.commit()

    assert [slot.status for slot in list_slots(db, 'pro-1', MONDAY, NOW)] == ['booked', 'available']
    with pytest.raises(SlotUnavailableError):
        book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 0, 0), NOW)


def test_book_appointment_converts_aware_time_to_clinic_time(db, patient, monkeypatch) -> None:
    monkeypatch.setattr('backend.core.config.CLINIC_TIMEZONE', 'America/Sao_Paulo')

    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc), NOW)

    assert appointment.scheduled_at == datetime(2026, 1, 5, 9, 0)

    same_instant = datetime(2026, 1, 5, 9, 0, tzinfo=timezone(timedelta(hours=-3)))
    with pytest.raises(SlotUnavailableError):
        book_appointment(db, 'pro-1', patient, same_instant, NOW)

    other_instant = datetime(2026, 1, 5, 13, 0, tzinfo=timezone.utc)
    assert book_appointment(db, 'pro-1', patient, other_instant, NOW).scheduled_at == datetime(2026, 1, 5, 10, 0)


def test_book_appointment_price_override_wins(db, patient) -> None:
    patient.session_price = 9000
    db.commit()

    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW, price=0)

    assert appointment.price == 0


def test_reschedule_appointment_moves_session_to_open_slot(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    reschedule_appointment(db, appointment, datetime(2026, 1, 5, 11, 0), NOW)

    assert appointment.scheduled_at == datetime(2026, 1, 5, 11, 0)
    assert [slot.status for slot in list_slots(db, 'pro-1', MONDAY, NOW)] == ['available', 'available', 'booked']


def test_reschedule_appointment_ignores_the_session_being_moved(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)
    db.query(ProfessionalAvailability).update({'start_time': time(9, 20), 'end_time': time(13, 0)})
    db.commit()

    # 09:20 overlaps only the session's own current time.
    reschedule_appointment(db, appointment, datetime(2026, 1, 5, 9, 20), NOW)

    assert appointment.scheduled_at == datetime(2026, 1, 5, 9, 20)


def test_reschedule_appointment_rejects_taken_slot(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)
    book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 10, 0), NOW)

    with pytest.raises(SlotUnavailableError):
        reschedule_appointment(db, appointment, datetime(2026, 1, 5, 10, 0), NOW)

    db.rollback()
    db.refresh(appointment)
    assert appointment.scheduled_at == datetime(2026, 1, 5, 9, 0)


def test_reschedule_appointment_rejects_cancelled_session(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)
    cancel_appointment(db, appointment)

    with pytest.raises(InvalidStatusError):
        reschedule_appointment(db, appointment, datetime(2026, 1, 5, 10, 0), NOW)


def test_update_appointment_status_no_show_keeps_slot_booked(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    update_appointment_status(db, appointment, 'no_show')

    assert appointment.status == 'no_show'
    assert list_slots(db, 'pro-1', MONDAY, NOW)[0].is_booked


def test_update_appointment_status_rejects_unknown_status(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    with pytest.raises(InvalidStatusError):
        update_appointment_status(db, appointment, 'postponed')


def test_cancel_appointment_cancels_pending_payment(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    cancel_appointment(db, appointment)

    assert appointment.payment_status == 'cancelled'


def test_update_payment_status(db, patient) -> None:
    appointment = book_appointment(db, 'pro-1', patient, datetime(2026, 1, 5, 9, 0), NOW)

    update_payment_status(db, appointment, 'paid')

    assert appointment.payment_status == 'paid'
    with pytest.raises(InvalidStatusError):
        update_payment_status(db, appointment, 'refunded')
