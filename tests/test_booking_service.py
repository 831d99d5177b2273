import re
from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.application.ports.schedule_repo import ScheduleDto
from app.application.ports.user_repo import UserDto
from app.application.services.booking_service import BookingService, BookingRequest
from app.application.services.patient_identity_service import PatientIdentityService
from app.exceptions import ValidationError, ForbiddenError, NotFoundError, SlotConflictError

from fakes import (
    FakeApptRepo,
    FakeAudit,
    FakeNotifier,
    FakePatientRepo,
    FakeScheduleRepo,
    FakeUserRepo,
    RacingApptRepo,
)

TODAY = date(2025, 11, 19)
WORK_DATE = date(2025, 11, 20)
SCHEDULE = ScheduleDto(
    id=7,
    doctor_id=3,
    doctor_name="Dr. Nguyen",
    department="Pediatrics",
    work_date=WORK_DATE,
    start_time=time(8, 0),
    end_time=time(12, 0),
)


def make_service(appt_cls=FakeApptRepo, users=(), notifier=None):
    schedules = FakeScheduleRepo(SCHEDULE)
    appts = appt_cls(schedules)
    patients = FakePatientRepo(appts)
    appts.patients = patients
    identities = PatientIdentityService(patients=patients, users=FakeUserRepo(*users), today=lambda: TODAY)
    svc = BookingService(
        schedules=schedules,
        appointments=appts,
        identities=identities,
        notifier=notifier if notifier is not None else FakeNotifier(),
        audit=FakeAudit(),
        today=lambda: TODAY,
        now=lambda: datetime(2025, 11, 19, 9, 30),
    )
    return svc, appts, patients


def request(hour=time(8, 0), **overrides):
    fields = dict(
        full_name=" Pham Minh ",
        phone="0912345678",
        email="a@x.com",
        work_date=WORK_DATE,
        doctor_id=3,
        appoint_hour=hour,
    )
    fields.update(overrides)
    return BookingRequest(**fields)


def test_book_success_creates_one_scheduled_active_appointment():
    svc, appts, patients = make_service()
    out = svc.book(request())

    assert out.appointment_id == 1
    assert out.schedule_id == 7
    assert out.doctor_name == "Dr. Nguyen"
    assert out.date == WORK_DATE
    assert out.appoint_hour == time(8, 0)
    assert re.fullmatch(r"BK-20251120-[0-9A-F]{4}", out.appointment_code)

    stored = appts.get_by_id(out.appointment_id)
    assert stored.status == "Scheduled"
    assert stored.is_active is True
    assert stored.booking_code == out.appointment_code
    assert patients.get_by_id(out.patient_id).name == "Pham Minh"


@pytest.mark.parametrize("hour", [time(7, 59), time(12, 0), time(13, 0)])
def test_hour_outside_working_window_is_rejected_without_writes(hour):
    svc, appts, patients = make_service()
    with pytest.raises(ValidationError) as exc:
        svc.book(request(hour=hour))
    assert exc.value.status_code == 400
    assert "outside" in exc.value.detail
    assert appts.rows == {}
    assert patients.rows == {}


def test_last_minute_before_end_is_bookable():
    svc, _, _ = make_service()
    assert svc.book(request(hour=time(11, 59))).appoint_hour == time(11, 59)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"email": "not-an-email"}, "email"),
        ({"email": "a@b"}, "email"),
        ({"phone": "912345678"}, "phone"),
        ({"phone": "01234567"}, "phone"),
        ({"phone": "012345678901"}, "phone"),
        ({"work_date": date(2025, 11, 18)}, "today"),
        ({"gender": "male"}, "Gender"),
        ({"date_of_birth": date(2025, 11, 20)}, "birth"),
        ({"symptom": "x" * 501}, "500"),
    ],
)
def test_invalid_input_fails_fast(overrides, message):
    svc, appts, patients = make_service()
    with pytest.raises(ValidationError) as exc:
        svc.book(request(**overrides))
    assert message in exc.value.detail
    assert appts.rows == {}
    assert patients.rows == {}


def test_booking_today_and_500_char_symptom_are_allowed():
    svc, _, _ = make_service()
    svc.schedules.schedules[8] = ScheduleDto(8, 3, "Dr. Nguyen", None, TODAY, time(8, 0), time(17, 0))
    out = svc.book(request(work_date=TODAY, symptom="x" * 500, phone="09123456789"))
    assert out.schedule_id == 8


def test_no_schedule_that_day():
    svc, _, _ = make_service()
    with pytest.raises(ValidationError) as exc:
        svc.book(request(work_date=date(2025, 11, 21)))
    assert "no working schedule" in exc.value.detail


def test_second_booking_of_same_slot_is_a_conflict():
    svc, appts, _ = make_service()
    svc.book(request())
    with pytest.raises(SlotConflictError) as exc:
        svc.book(request(email="b@x.com"))
    assert exc.value.status_code == 409
    assert len(appts.rows) == 1


def test_write_time_uniqueness_violation_becomes_conflict():
    svc, appts, _ = make_service(appt_cls=RacingApptRepo)
    svc.book(request())
    # Pre-check passes but the store rejects the insert
    with pytest.raises(SlotConflictError) as exc:
        svc.book(request(email="b@x.com"))
    assert exc.value.status_code == 409
    assert "just booked" in exc.value.detail
    active = [a for a in appts.rows.values() if a.schedule_id == 7 and a.appoint_hour == time(8, 0) and a.is_active]
    assert len(active) == 1


def test_notification_failure_does_not_fail_booking():
    svc, appts, _ = make_service(notifier=FakeNotifier(fail=True))
    out = svc.book(request())
    assert appts.get_by_id(out.appointment_id).is_active is True


def test_confirmation_email_lists_doctor_date_hour_and_code():
    notifier = FakeNotifier()
    svc, _, _ = make_service(notifier=notifier)
    out = svc.book(request(hour=time(9, 15), full_name="<b>Minh</b>", department="Cardiology"))

    (to, subject, body), = notifier.sent
    assert to == "a@x.com"
    assert subject == f"Appointment confirmation #{out.appointment_code}"
    assert "Dr. Nguyen" in body
    assert "Cardiology" in body
    assert "20/11/2025" in body
    assert "09:15" in body
    assert "&lt;b&gt;Minh&lt;/b&gt;" in body


def test_booking_code_store_failure_is_swallowed():
    svc, appts, _ = make_service()

    def boom(appointment_id, code):
        raise RuntimeError("column booking_code does not exist")

    appts.set_booking_code_if_supported = boom
    out = svc.book(request())
    assert out.appointment_code.startswith("BK-20251120-")


def test_cancel_then_busy_slots_no_longer_list_the_hour():
    svc, _, _ = make_service()
    first = svc.book(request())
    svc.book(request(hour=time(9, 0), email="b@x.com"))

    assert [b.appoint_hour for b in svc.list_busy_slots(3, WORK_DATE)] == [time(8, 0), time(9, 0)]
    svc.cancel(first.appointment_id)
    assert [b.appoint_hour for b in svc.list_busy_slots(3, WORK_DATE)] == [time(9, 0)]

    # The slot is free again
    again = svc.book(request(email="c@x.com"))
    assert again.appointment_id != first.appointment_id


def test_cancel_unknown_appointment_is_not_found():
    svc, _, _ = make_service()
    with pytest.raises(NotFoundError) as exc:
        svc.cancel(99)
    assert exc.value.status_code == 404


def test_cancel_twice_is_a_noop_while_the_row_exists():
    svc, appts, _ = make_service()
    out = svc.book(request())
    svc.cancel(out.appointment_id)
    svc.cancel(out.appointment_id)
    assert appts.get_by_id(out.appointment_id).is_active is False


def test_busy_slot_shows_patient_name_and_phone():
    svc, _, _ = make_service()
    svc.book(request())
    (slot,) = svc.list_busy_slots(3, WORK_DATE)
    assert (slot.name, slot.phone, slot.status) == ("Pham Minh", "0912345678", "Scheduled")


def test_guest_then_authenticated_booking_merges_history():
    user = UserDto(id=42, username="minh", email="A@x.com", phone=None)
    svc, appts, patients = make_service(users=[user])
    # The user registers only after booking as a guest
    svc.identities.users.users.clear()

    guest = svc.book(request())
    assert patients.get_by_id(guest.patient_id).user_id is None

    svc.identities.users.users[42] = user
    mine = svc.book(request(hour=time(10, 0), email=" A@X.com "), current_user_id=42)

    assert mine.patient_id != guest.patient_id
    assert patients.get_by_id(guest.patient_id) is None
    assert appts.get_by_id(guest.appointment_id).patient_id == mine.patient_id
    assert patients.get_by_id(mine.patient_id).user_id == 42


def test_public_booking_with_registered_email_goes_to_the_account():
    user = UserDto(id=5, username="lan", email="lan@x.com", phone=None)
    svc, _, patients = make_service(users=[user])
    out = svc.book(request(email="Lan@X.com"))
    assert patients.get_by_id(out.patient_id).user_id == 5


def test_explicit_patient_must_belong_to_current_user():
    user = UserDto(id=5, username="lan", email="lan@x.com", phone=None)
    svc, appts, patients = make_service(users=[user])
    other = patients.create(None, "Someone", "0911111111", "someone@x.com", "Male", date(1990, 1, 1))

    with pytest.raises(ForbiddenError):
        svc.book(request(patient_id=other.id), current_user_id=5)
    assert appts.rows == {}

    mine = patients.create(5, "Lan", "0922222222", "lan@x.com", "Female", date(1992, 2, 2))
    out = svc.book(request(patient_id=mine.id), current_user_id=5)
    assert out.patient_id == mine.id


def test_schedule_id_must_match_doctor_and_date():
    svc, _, _ = make_service()
    with pytest.raises(ValidationError):
        svc.book(request(schedule_id=7, doctor_id=4))
    with pytest.raises(ValidationError):
        svc.book(request(schedule_id=99))
    assert svc.book(request(schedule_id=7)).schedule_id == 7


def test_audit_records_booking_and_cancel():
    svc, _, _ = make_service()
    out = svc.book(request())
    svc.cancel(out.appointment_id)
    assert [e[0] for e in svc.audit.entries] == ["booking.created", "booking.cancelled"]


def test_blank_gender_is_treated_as_not_given():
    svc, _, patients = make_service()
    out = svc.book(request(gender="   "))
    assert patients.get_by_id(out.patient_id).gender == "Male"


def test_offset_aware_hour_is_rejected_before_any_write():
    svc, appts, patients = make_service()
    with pytest.raises(ValidationError) as exc:
        svc.book(request(hour=time(8, 0, tzinfo=timezone(timedelta(hours=7)))))
    assert "offset" in exc.value.detail
    assert appts.rows == {}
    assert patients.rows == {}
