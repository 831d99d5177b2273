# app/db/models/clinic/schedule.py
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from datetime import date, time

class Schedule(SQLModel, table=True):
    """One doctor's working block on one date."""
    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_schedule_window"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    work_date: date = Field(index=True)
    start_time: time
    end_time: time
    status: str = Field(max_length=10, default="Scheduled")
    is_active: bool = Field(default=True)
