from dataclasses import dataclass
from typing import List, Optional
from datetime import datetime, date, time


class SlotAlreadyTakenError(Exception):
    """The store rejected an insert because (schedule_id, hour) is already actively booked."""

    def __init__(self, schedule_id: int, hour: time):
        super().__init__(f"Slot {hour:%H:%M} on schedule {schedule_id} is already booked")
        self.schedule_id = schedule_id
        self.hour = hour


@dataclass
class AppointmentDto:
    id: int
    patient_id: int
    schedule_id: int
    appoint_hour: time
    status: str
    symptom: Optional[str]
    is_active: bool
    booking_code: Optional[str]
    created_at: datetime


@dataclass
class BusySlotDto:
    name: str
    phone: Optional[str]
    appoint_hour: time
    status: str


class AppointmentsRepository:
    def is_slot_available(self, schedule_id: int, hour: time) -> bool:
        ...

    def create(self, patient_id: int, schedule_id: int, hour: time, symptom: Optional[str]) -> AppointmentDto:
        """Insert a Scheduled, active appointment.

        Raises SlotAlreadyTakenError when the uniqueness constraint on the
        active slot rejects the row.
        """
        ...

    def set_booking_code_if_supported(self, appointment_id: int, code: str) -> None:
        ...

    def soft_delete(self, appointment_id: int) -> bool:
        ...

    def get_by_id(self, appointment_id: int) -> Optional[AppointmentDto]:
        ...

    def list_busy_slots(self, doctor_id: int, work_date: date) -> List[BusySlotDto]:
        ...
