import logging
from datetime import date
from typing import Optional
from sqlmodel import Session, select, func

from .....db.models import Patient, Appointment
from .....application.ports.patients_repo import PatientsRepository, PatientDto, MergeResult
from .....utils import normalize_email

logger = logging.getLogger(__name__)


class SqlPatientsRepository(PatientsRepository):
    """Patient writes are flushed, not committed.

    They join the request's unit of work and are committed together with the
    appointment insert, so a booking that fails afterwards leaves no patient
    rows or merge behind.
    """
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, p: Patient) -> PatientDto:
        return PatientDto(
            id=p.id,
            user_id=p.user_id,
            name=p.name,
            phone=p.phone,
            email=p.email,
            gender=p.gender,
            date_of_birth=p.date_of_birth,
            address=p.address,
        )

    def find_by_email(self, email: str) -> Optional[PatientDto]:
        normalized = normalize_email(email)
        p = self.session.exec(
            select(Patient)
            .where(Patient.email.is_not(None))
            .where(func.lower(Patient.email) == normalized)
            .order_by(Patient.id)
        ).first()
        return self._to_dto(p) if p else None

    def find_by_user_id(self, user_id: int) -> Optional[PatientDto]:
        p = self.session.exec(
            select(Patient).where(Patient.user_id == user_id).order_by(Patient.id)
        ).first()
        return self._to_dto(p) if p else None

    def get_by_id(self, patient_id: int) -> Optional[PatientDto]:
        p = self.session.get(Patient, patient_id)
        return self._to_dto(p) if p else None

    def create(self, user_id: Optional[int], name: str, phone: Optional[str], email: Optional[str], gender: str, date_of_birth: date) -> PatientDto:
        p = Patient(
            user_id=user_id,
            name=name,
            phone=phone,
            email=email,
            gender=gender,
            date_of_birth=date_of_birth,
            address=None,
        )
        self.session.add(p)
        self.session.flush()
        self.session.refresh(p)
        return self._to_dto(p)

    def update(self, patient: PatientDto) -> None:
        p = self.session.get(Patient, patient.id)
        if not p:
            return
        p.name = patient.name
        p.phone = patient.phone
        p.email = patient.email
        p.gender = patient.gender
        p.date_of_birth = patient.date_of_birth
        p.address = patient.address
        self.session.add(p)
        self.session.flush()

    def is_owned_by_user(self, patient_id: int, user_id: int) -> bool:
        found = self.session.exec(
            select(Patient.id)
            .where(Patient.id == patient_id)
            .where(Patient.user_id == user_id)
        ).first()
        return found is not None

    def merge_anonymous_into(self, email: str, user_id: int, target_patient_id: int, fallback_email: Optional[str]) -> MergeResult:
        normalized = normalize_email(email)
        result = MergeResult(target_patient_id=target_patient_id)
        try:
            guest_ids = list(self.session.exec(
                select(Patient.id)
                .where(Patient.user_id.is_(None))
                .where(Patient.email.is_not(None))
                .where(func.lower(Patient.email) == normalized)
                .where(Patient.id != target_patient_id)
            ).all()) if normalized else []

            if guest_ids:
                # Repoint children first so no appointment ever references a deleted patient
                appts = self.session.exec(
                    select(Appointment).where(Appointment.patient_id.in_(guest_ids))
                ).all()
                for a in appts:
                    a.patient_id = target_patient_id
                    self.session.add(a)
                self.session.flush()

                guests = self.session.exec(select(Patient).where(Patient.id.in_(guest_ids))).all()
                for g in guests:
                    self.session.delete(g)
                self.session.flush()

                result.merged_patient_ids = guest_ids
                result.reassigned_appointments = len(appts)

            target = self.session.get(Patient, target_patient_id)
            if target is None:
                raise LookupError(f"Patient {target_patient_id} not found")
            if target.user_id != user_id:
                target.user_id = user_id
            if (target.email is None or target.email.strip() == "") and fallback_email:
                target.email = fallback_email
            self.session.add(target)
            self.session.flush()
        except Exception:
            self.session.rollback()
            logger.exception(f"Merging guest patients into {target_patient_id} failed, rolled back")
            raise
        return result
