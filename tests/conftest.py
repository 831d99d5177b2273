import os

# Settings are read once at import time; make them test friendly first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("SMTP_HOST", "")

from dataclasses import dataclass
from datetime import date, time, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.db.models import Doctor, Schedule, User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@dataclass
class Clinic:
    doctor_id: int
    schedule_id: int
    work_date: date


@pytest.fixture
def clinic(session) -> Clinic:
    """Doctor with an 08:00-12:00 schedule a month from now."""
    doctor = Doctor(name="Dr. Tran Van An", department="Cardiology")
    session.add(doctor)
    session.commit()
    session.refresh(doctor)

    work_date = date.today() + timedelta(days=30)
    schedule = Schedule(doctor_id=doctor.id, work_date=work_date, start_time=time(8, 0), end_time=time(12, 0))
    session.add(schedule)
    session.commit()
    session.refresh(schedule)
    return Clinic(doctor_id=doctor.id, schedule_id=schedule.id, work_date=work_date)


@pytest.fixture
def make_user(session):
    def _make(email: str, username: str = None, role: str = "R03") -> User:
        user = User(username=username or email.split("@")[0], email=email, role_id=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make
