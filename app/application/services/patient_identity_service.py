import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..ports.patients_repo import PatientsRepository, PatientDto, MergeResult
from ..ports.user_repo import UserRepository
from ...exceptions import NotFoundError
from ...utils import normalize_email
from .clinic_time import clinic_today, years_before

logger = logging.getLogger(__name__)

VALID_GENDERS = ("Male", "Female")
DEFAULT_GENDER = "Male"
DEFAULT_AGE_YEARS = 20


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


@dataclass
class PatientIdentityService:
    """Finds or creates the patient record behind a booking.

    Guests are keyed by normalized email. Authenticated users are keyed by
    user id, and any guest records sharing their email are folded into the
    user's patient so booking history stays on one identity. Email equality
    is the only bridge between the two; nothing is matched fuzzily.
    """
    patients: PatientsRepository
    users: UserRepository
    today: Callable[[], date] = clinic_today

    def resolve(self, email: str, name: str, phone: str, gender: Optional[str] = None,
                date_of_birth: Optional[date] = None, user_id: Optional[int] = None) -> int:
        normalized = normalize_email(email)
        if user_id is None:
            # A guest booking made with a registered email belongs to that account
            user_id = self.users.find_id_by_email(normalized)
            if user_id is not None:
                logger.info(f"Guest booking email matches registered user {user_id}")

        if user_id is None:
            return self.resolve_by_email(normalized, name, phone, gender, date_of_birth)

        patient_id = self.resolve_by_user(user_id, name, phone, gender, date_of_birth)
        self.merge_guests(user_id, patient_id, normalized)
        return patient_id

    def resolve_by_email(self, email: str, name: str, phone: str, gender: Optional[str] = None,
                         date_of_birth: Optional[date] = None) -> int:
        normalized = normalize_email(email)
        patient = self.patients.find_by_email(normalized)
        if patient is None:
            created = self.patients.create(
                user_id=None,
                name=name,
                phone=phone,
                email=normalized,
                gender=self._gender_or_default(gender),
                date_of_birth=date_of_birth or self._default_date_of_birth(),
            )
            logger.info(f"Created guest patient {created.id}")
            return created.id

        if self._soft_patch(patient, name, phone):
            self.patients.update(patient)
        return patient.id

    def resolve_by_user(self, user_id: int, name: str, phone: str, gender: Optional[str] = None,
                        date_of_birth: Optional[date] = None) -> int:
        patient = self.patients.find_by_user_id(user_id)
        if patient is None:
            user = self.users.get_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found")
            created = self.patients.create(
                user_id=user_id,
                name=name,
                phone=phone,
                email=normalize_email(user.email) or None,
                gender=self._gender_or_default(gender),
                date_of_birth=date_of_birth or self._default_date_of_birth(),
            )
            logger.info(f"Created patient {created.id} for user {user_id}")
            return created.id

        changed = self._soft_patch(patient, name, phone)
        if patient.gender is None and gender in VALID_GENDERS:
            patient.gender = gender
            changed = True
        if patient.date_of_birth is None and date_of_birth is not None:
            patient.date_of_birth = date_of_birth
            changed = True
        if changed:
            self.patients.update(patient)
        return patient.id

    def merge_guests(self, user_id: int, target_patient_id: int, request_email: str) -> MergeResult:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        # The account email wins; the form email only bridges when the account has none
        merge_email = normalize_email(user.email) or normalize_email(request_email)
        result = self.patients.merge_anonymous_into(
            email=merge_email,
            user_id=user_id,
            target_patient_id=target_patient_id,
            fallback_email=normalize_email(user.email) or None,
        )
        if result.merged_patient_ids:
            logger.info(
                f"Merged guest patients {result.merged_patient_ids} into patient {target_patient_id} "
                f"({result.reassigned_appointments} appointments reassigned)"
            )
        return result

    def _soft_patch(self, patient: PatientDto, name: str, phone: str) -> bool:
        # Only fill blanks; existing values are never overwritten
        changed = False
        if _blank(patient.name) and not _blank(name):
            patient.name = name
            changed = True
        if _blank(patient.phone) and not _blank(phone):
            patient.phone = phone
            changed = True
        return changed

    def _gender_or_default(self, gender: Optional[str]) -> str:
        return gender if gender in VALID_GENDERS else DEFAULT_GENDER

    def _default_date_of_birth(self) -> date:
        return years_before(self.today(), DEFAULT_AGE_YEARS)
