# app/db/models/clinic/patient.py
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from datetime import date

class Patient(SQLModel, table=True):
    # user_id NULL marks a guest record created from an anonymous booking
    __tablename__ = "patients"
    __table_args__ = (
        CheckConstraint("gender IN ('Male','Female')", name="chk_patient_gender"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    name: str = Field(max_length=100)
    gender: Optional[str] = Field(max_length=6, default=None)
    date_of_birth: Optional[date] = Field(default=None)
    phone: Optional[str] = Field(max_length=15, default=None)
    email: Optional[str] = Field(max_length=250, default=None, index=True)
    address: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
