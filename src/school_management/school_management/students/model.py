from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import Gender, StudentStatus


@dataclass(frozen=True)
class SchoolClass:
    class_id: int
    school_id: int
    name: str
    level: Optional[str] = None


@dataclass(frozen=True)
class Stream:
    stream_id: int
    school_id: int
    class_id: int
    name: str


@dataclass(frozen=True)
class NewStudent:
    """Validated admission data (before an admission number is assigned)."""

    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    other_name: Optional[str] = None
    class_id: Optional[int] = None
    stream_id: Optional[int] = None
    admission_date: Optional[date] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Student:
    student_id: int
    school_id: int
    admission_no: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    status: StudentStatus
    admission_date: date
    other_name: Optional[str] = None
    class_id: Optional[int] = None
    class_name: Optional[str] = None
    stream_id: Optional[int] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    deleted_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.other_name, self.last_name]
        return " ".join(p for p in parts if p)

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "admission_no": self.admission_no,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "other_name": self.other_name,
            "full_name": self.full_name,
            "date_of_birth": self.date_of_birth.isoformat(),
            "gender": self.gender.value,
            "status": self.status.value,
            "admission_date": self.admission_date.isoformat(),
            "class_id": self.class_id,
            "class_name": self.class_name,
            "stream_id": self.stream_id,
            "guardian_name": self.guardian_name,
            "guardian_phone": self.guardian_phone,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
        }
