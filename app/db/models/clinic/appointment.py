# app/db/models/clinic/appointment.py
from typing import Optional
from sqlalchemy import CheckConstraint, DateTime, Index, text
from sqlmodel import SQLModel, Field
from datetime import datetime, time, timezone

APPOINTMENT_STATUSES = ("Scheduled", "Completed", "Cancelled")

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one active appointment per (schedule, hour); cancelled rows keep
        # their history without blocking a rebooking of the slot.
        Index(
            "ux_appointments_active_slot",
            "schedule_id",
            "appoint_hour",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        CheckConstraint(
            "status IN ('Scheduled','Completed','Cancelled')",
            name="chk_appointment_status",
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patients.id", index=True)
    schedule_id: int = Field(foreign_key="schedules.id", index=True)
    appoint_hour: time
    status: str = Field(max_length=10, default="Scheduled")
    symptom: Optional[str] = Field(max_length=500, default=None)
    booking_code: Optional[str] = Field(max_length=20, default=None, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True))
