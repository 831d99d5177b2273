# Models package (re-export feature modules for stable imports)
from .users.user import User
from .clinic.doctor import Doctor
from .clinic.schedule import Schedule
from .clinic.patient import Patient
from .clinic.appointment import Appointment, APPOINTMENT_STATUSES

__all__ = [
    "User",
    "Doctor",
    "Schedule",
    "Patient",
    "Appointment",
    "APPOINTMENT_STATUSES",
]
