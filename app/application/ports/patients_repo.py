from dataclasses import dataclass, field
from typing import List, Optional
from datetime import date


@dataclass
class PatientDto:
    id: int
    user_id: Optional[int]
    name: str
    phone: Optional[str]
    email: Optional[str]
    gender: Optional[str]
    date_of_birth: Optional[date]
    address: Optional[str] = None


@dataclass
class MergeResult:
    target_patient_id: int
    merged_patient_ids: List[int] = field(default_factory=list)
    reassigned_appointments: int = 0


class PatientsRepository:
    def find_by_email(self, email: str) -> Optional[PatientDto]:
        ...

    def find_by_user_id(self, user_id: int) -> Optional[PatientDto]:
        ...

    def get_by_id(self, patient_id: int) -> Optional[PatientDto]:
        ...

    def create(self, user_id: Optional[int], name: str, phone: Optional[str], email: Optional[str], gender: str, date_of_birth: date) -> PatientDto:
        ...

    def update(self, patient: PatientDto) -> None:
        ...

    def is_owned_by_user(self, patient_id: int, user_id: int) -> bool:
        ...

    def merge_anonymous_into(self, email: str, user_id: int, target_patient_id: int, fallback_email: Optional[str]) -> MergeResult:
        """Move every guest patient with ``email`` onto the target, in one transaction.

        Appointments of the guest records are repointed to the target before the
        guest rows are deleted; the target is stamped with ``user_id`` and, when it
        has no email yet, with ``fallback_email``. Either all of it is applied or
        none of it is; it commits with the rest of the booking.
        """
        ...
