from datetime import date
from typing import Optional
from sqlmodel import Session, select

from .....db.models import Schedule, Doctor
from .....application.ports.schedule_repo import ScheduleRepository, ScheduleDto


class SqlScheduleRepository(ScheduleRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, s: Schedule, d: Doctor) -> ScheduleDto:
        return ScheduleDto(
            id=s.id,
            doctor_id=s.doctor_id,
            doctor_name=d.name,
            department=d.department,
            work_date=s.work_date,
            start_time=s.start_time,
            end_time=s.end_time,
        )

    def _base_query(self):
        return (
            select(Schedule, Doctor)
            .join(Doctor, Doctor.id == Schedule.doctor_id)
            .where(Schedule.is_active == True)  # noqa: E712
        )

    def find_schedule(self, doctor_id: int, work_date: date) -> Optional[ScheduleDto]:
        row = self.session.exec(
            self._base_query()
            .where(Schedule.doctor_id == doctor_id)
            .where(Schedule.work_date == work_date)
            .order_by(Schedule.start_time)
        ).first()
        return self._to_dto(*row) if row else None

    def get_by_id(self, schedule_id: int) -> Optional[ScheduleDto]:
        row = self.session.exec(self._base_query().where(Schedule.id == schedule_id)).first()
        return self._to_dto(*row) if row else None
