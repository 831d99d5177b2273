import logging
from datetime import date, time
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import Appointment, Schedule, Patient
from .....application.ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    BusySlotDto,
    SlotAlreadyTakenError,
)

logger = logging.getLogger(__name__)


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _appt_to_dto(self, a: Appointment) -> AppointmentDto:
        return AppointmentDto(
            id=a.id,
            patient_id=a.patient_id,
            schedule_id=a.schedule_id,
            appoint_hour=a.appoint_hour,
            status=a.status,
            symptom=a.symptom,
            is_active=a.is_active,
            booking_code=a.booking_code,
            created_at=a.created_at,
        )

    def is_slot_available(self, schedule_id: int, hour: time) -> bool:
        existing = self.session.exec(
            select(Appointment.id)
            .where(Appointment.schedule_id == schedule_id)
            .where(Appointment.appoint_hour == hour)
            .where(Appointment.is_active == True)  # noqa: E712
        ).first()
        return existing is None

    def create(self, patient_id: int, schedule_id: int, hour: time, symptom: Optional[str]) -> AppointmentDto:
        appt = Appointment(
            patient_id=patient_id,
            schedule_id=schedule_id,
            appoint_hour=hour,
            symptom=symptom,
            status="Scheduled",
            is_active=True,
        )
        self.session.add(appt)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            # Only the active-slot index maps to a conflict; other integrity errors propagate
            if not self.is_slot_available(schedule_id, hour):
                raise SlotAlreadyTakenError(schedule_id, hour)
            raise
        self.session.refresh(appt)
        return self._appt_to_dto(appt)

    def set_booking_code_if_supported(self, appointment_id: int, code: str) -> None:
        try:
            appt = self.session.get(Appointment, appointment_id)
            if not appt:
                return
            appt.booking_code = code
            self.session.add(appt)
            self.session.commit()
        except SQLAlchemyError as e:
            # Older databases may not carry the booking_code column
            self.session.rollback()
            logger.warning(f"Booking code not stored for appointment {appointment_id}: {e}")

    def soft_delete(self, appointment_id: int) -> bool:
        appt = self.session.get(Appointment, appointment_id)
        if not appt:
            return False
        appt.is_active = False
        appt.status = "Cancelled"
        self.session.add(appt)
        self.session.commit()
        return True

    def get_by_id(self, appointment_id: int) -> Optional[AppointmentDto]:
        a = self.session.get(Appointment, appointment_id)
        return self._appt_to_dto(a) if a else None

    def list_busy_slots(self, doctor_id: int, work_date: date) -> List[BusySlotDto]:
        rows = self.session.exec(
            select(Appointment, Patient)
            .join(Schedule, Schedule.id == Appointment.schedule_id)
            .outerjoin(Patient, Patient.id == Appointment.patient_id)
            .where(Appointment.is_active == True)  # noqa: E712
            .where(Schedule.doctor_id == doctor_id)
            .where(Schedule.work_date == work_date)
            .order_by(Appointment.appoint_hour)
        ).all()
        return [
            BusySlotDto(
                name=p.name if p is not None else "(Unknown)",
                phone=p.phone if p is not None else None,
                appoint_hour=a.appoint_hour,
                status=a.status,
            )
            for a, p in rows
        ]
