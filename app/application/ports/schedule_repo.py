from dataclasses import dataclass
from typing import Optional
from datetime import date, time


@dataclass
class ScheduleDto:
    id: int
    doctor_id: int
    doctor_name: str
    department: Optional[str]
    work_date: date
    start_time: time
    end_time: time

    def covers(self, hour: time) -> bool:
        # Working window is half-open: the end time itself is not bookable
        return self.start_time <= hour < self.end_time


class ScheduleRepository:
    def find_schedule(self, doctor_id: int, work_date: date) -> Optional[ScheduleDto]:
        ...

    def get_by_id(self, schedule_id: int) -> Optional[ScheduleDto]:
        ...
