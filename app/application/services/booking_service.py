import html
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, List, Optional

from ..ports.appointments_repo import AppointmentsRepository, BusySlotDto, SlotAlreadyTakenError
from ..ports.audit_logger import AuditLogger
from ..ports.notification_sender import NotificationSender
from ..ports.schedule_repo import ScheduleRepository, ScheduleDto
from ...exceptions import ValidationError, ForbiddenError, NotFoundError, SlotConflictError
from .booking_code import build_booking_code
from .clinic_time import clinic_today, clinic_now
from .patient_identity_service import PatientIdentityService, VALID_GENDERS

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# National mobile numbers: leading 0, 9 to 11 digits in total
PHONE_PATTERN = re.compile(r"^0\d{8,10}$")
MAX_SYMPTOM_LENGTH = 500

SLOT_TAKEN_MESSAGE = "This time slot is already booked."
SLOT_RACE_MESSAGE = "This time slot was just booked by someone else. Please choose another time."


@dataclass
class BookingRequest:
    full_name: str
    phone: str
    email: str
    work_date: date
    doctor_id: int
    appoint_hour: time
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    symptom: Optional[str] = None
    department: Optional[str] = None
    schedule_id: Optional[int] = None
    patient_id: Optional[int] = None


@dataclass
class BookingResult:
    appointment_id: int
    appointment_code: str
    patient_id: int
    schedule_id: int
    doctor_name: str
    date: date
    appoint_hour: time


@dataclass
class BookingService:
    """Validates a booking, reserves the slot and attaches it to a patient.

    The availability check ahead of the insert is advisory only. Two requests
    can both pass it; the unique index on active (schedule, hour) rows rejects
    the loser, which is reported as a SlotConflictError like the pre-check.
    Patient resolution and merging share the insert's transaction, so the
    loser leaves no patient rows behind.
    """
    schedules: ScheduleRepository
    appointments: AppointmentsRepository
    identities: PatientIdentityService
    notifier: Optional[NotificationSender] = None
    audit: Optional[AuditLogger] = None
    today: Callable[[], date] = clinic_today
    now: Callable[[], datetime] = clinic_now

    def book(self, request: BookingRequest, current_user_id: Optional[int] = None) -> BookingResult:
        self._validate(request)

        schedule = self._resolve_schedule(request)
        if not schedule.covers(request.appoint_hour):
            raise ValidationError("Appointment hour is outside the doctor's working hours.")

        if not self.appointments.is_slot_available(schedule.id, request.appoint_hour):
            logger.info(f"Slot {request.appoint_hour:%H:%M} on schedule {schedule.id} already taken")
            raise SlotConflictError(SLOT_TAKEN_MESSAGE)

        patient_id = self._resolve_patient(request, current_user_id)

        try:
            appointment = self.appointments.create(
                patient_id=patient_id,
                schedule_id=schedule.id,
                hour=request.appoint_hour,
                symptom=request.symptom,
            )
        except SlotAlreadyTakenError:
            logger.warning(f"Lost booking race for slot {request.appoint_hour:%H:%M} on schedule {schedule.id}")
            raise SlotConflictError(SLOT_RACE_MESSAGE)

        code = build_booking_code(request.work_date)
        try:
            self.appointments.set_booking_code_if_supported(appointment.id, code)
        except Exception:
            logger.warning(f"Could not store booking code for appointment {appointment.id}", exc_info=True)

        self._send_confirmation(request, schedule, code)
        self._audit("booking.created", user_id=current_user_id, patient_id=patient_id,
                    details={"appointment_id": appointment.id, "schedule_id": schedule.id, "code": code})

        return BookingResult(
            appointment_id=appointment.id,
            appointment_code=code,
            patient_id=patient_id,
            schedule_id=schedule.id,
            doctor_name=schedule.doctor_name,
            date=request.work_date,
            appoint_hour=request.appoint_hour,
        )

    def cancel(self, appointment_id: int) -> None:
        # Not found only when the row is absent; repeating a cancel is a no-op
        if not self.appointments.soft_delete(appointment_id):
            raise NotFoundError("Appointment not found")
        self._audit("booking.cancelled", details={"appointment_id": appointment_id})

    def list_busy_slots(self, doctor_id: int, work_date: date) -> List[BusySlotDto]:
        return self.appointments.list_busy_slots(doctor_id, work_date)

    def _validate(self, request: BookingRequest) -> None:
        if not request.email or not EMAIL_PATTERN.match(request.email.strip()):
            raise ValidationError("Invalid email address.")
        if not request.phone or not PHONE_PATTERN.match(request.phone.strip()):
            raise ValidationError("Invalid phone number.")

        today = self.today()
        if request.work_date < today:
            raise ValidationError("Appointment date must be today or later.")
        # Blank gender means "not given"; the resolver applies the default
        if request.gender and request.gender.strip() and request.gender not in VALID_GENDERS:
            raise ValidationError("Gender must be Male or Female.")
        if request.appoint_hour.tzinfo is not None:
            raise ValidationError("Appointment hour must not include a UTC offset.")
        if request.date_of_birth is not None and request.date_of_birth > today:
            raise ValidationError("Date of birth cannot be in the future.")
        if request.symptom is not None and len(request.symptom) > MAX_SYMPTOM_LENGTH:
            raise ValidationError(f"Symptom must be at most {MAX_SYMPTOM_LENGTH} characters.")

    def _resolve_schedule(self, request: BookingRequest) -> ScheduleDto:
        if request.schedule_id is None:
            schedule = self.schedules.find_schedule(request.doctor_id, request.work_date)
            if schedule is None:
                logger.info(f"No schedule for doctor {request.doctor_id} on {request.work_date}")
                raise ValidationError("The doctor has no working schedule on this date.")
            return schedule

        schedule = self.schedules.get_by_id(request.schedule_id)
        if schedule is None:
            raise ValidationError("Schedule not found.")
        if schedule.doctor_id != request.doctor_id:
            raise ValidationError("Schedule does not belong to the selected doctor.")
        if schedule.work_date != request.work_date:
            raise ValidationError("Schedule does not match the appointment date.")
        return schedule

    def _resolve_patient(self, request: BookingRequest, current_user_id: Optional[int]) -> int:
        name = request.full_name.strip()
        phone = request.phone.strip()

        if request.patient_id is None:
            return self.identities.resolve(
                email=request.email,
                name=name,
                phone=phone,
                gender=request.gender,
                date_of_birth=request.date_of_birth,
                user_id=current_user_id,
            )

        if current_user_id is None or not self.identities.patients.is_owned_by_user(request.patient_id, current_user_id):
            raise ForbiddenError("Patient does not belong to the current account.")
        self.identities.merge_guests(current_user_id, request.patient_id, request.email)
        return request.patient_id

    def _send_confirmation(self, request: BookingRequest, schedule: ScheduleDto, code: str) -> None:
        if self.notifier is None:
            return
        # Best effort: a failed email never undoes or fails the booking
        try:
            self.notifier.send(
                to_email=request.email.strip(),
                subject=f"Appointment confirmation #{code}",
                html_body=self._confirmation_body(request, schedule, code),
            )
        except Exception as e:
            logger.warning(f"Confirmation email for {code} not sent: {e}")

    def _confirmation_body(self, request: BookingRequest, schedule: ScheduleDto, code: str) -> str:
        department = request.department or schedule.department or ""
        booked_at = self.now()
        return (
            f"<p>Hello {html.escape(request.full_name.strip())},</p>"
            f"<p>Your appointment has been booked successfully.</p>"
            f"<ul>"
            f"<li>Doctor: <b>{html.escape(schedule.doctor_name)}</b></li>"
            f"<li>Department: <b>{html.escape(department)}</b></li>"
            f"<li>Date: <b><span style='color:red; font-weight:700;'>{request.work_date:%d/%m/%Y}</span></b></li>"
            f"<li>Time: <b><span style='color:red; font-weight:700;'>{request.appoint_hour:%H:%M}</span></b></li>"
            f"<li>Booking code: <b>{code}</b></li>"
            f"</ul>"
            f"<p style='font-size:10px; color:#555;'>Booked at: <b>{booked_at:%H:%M:%S %d/%m/%Y}</b>.</p>"
            f"<p>Please arrive on time and bring the necessary documents.</p>"
        )

    def _audit(self, action: str, user_id: Optional[int] = None, patient_id: Optional[int] = None, details=None) -> None:
        if self.audit is None:
            return
        self.audit.log(action, user_id=user_id, patient_id=patient_id, success=True, details=details)
