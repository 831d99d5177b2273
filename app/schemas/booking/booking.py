# app/schemas/booking/booking.py
import datetime as dt
from pydantic import BaseModel, Field, field_validator
from typing import Optional

class BookingBase(BaseModel):
    fullName: str = Field(min_length=1, max_length=100)
    phone: str
    email: str
    date: dt.date  # YYYY-MM-DD
    doctorId: int = Field(gt=0)
    appointHour: dt.time  # HH:MM or HH:MM:SS
    gender: Optional[str] = None  # "Male" | "Female"
    dateOfBirth: Optional[dt.date] = None
    symptom: Optional[str] = None
    department: Optional[str] = None
    scheduleId: Optional[int] = None

    @field_validator("appointHour")
    @classmethod
    def validate_appoint_hour(cls, v):
        # Schedules are kept in clinic local time without an offset
        if v.tzinfo is not None:
            raise ValueError("Appointment hour must not include a UTC offset")
        return v

class PublicBookingRequest(BookingBase):
    pass

class PrivateBookingRequest(BookingBase):
    patientId: Optional[int] = None

class BookingResponse(BaseModel):
    appointmentId: int
    appointmentCode: str
    patientId: int
    scheduleId: int
    doctorName: str
    date: dt.date
    appointHour: dt.time

class BusySlotResponse(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    appointHour: dt.time
    status: str
