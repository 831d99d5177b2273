# app/db/models/clinic/doctor.py
from typing import Optional
from sqlmodel import SQLModel, Field

class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    name: str = Field(max_length=100)
    department: Optional[str] = Field(max_length=100, default=None)
    is_active: bool = Field(default=True)
