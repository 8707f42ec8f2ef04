from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import StudentStatus
from .model import NewStudent, SchoolClass, Stream, Student


class StudentRepository(Protocol):
    def get_by_id(self, *, school_id: int, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def get_by_admission_no(self, *, school_id: int, admission_no: str) -> Optional[Student]:
        raise NotImplementedError

    def find_duplicate(self, *, school_id: int, first_name: str, last_name: str, date_of_birth: date) -> Optional[Student]:
        raise NotImplementedError

    def max_admission_sequence(self, *, school_id: int, year: int) -> int:
        """Highest NNNNN used in ADM-<year>-NNNNN for this school, 0 if none."""

        raise NotImplementedError

    def create_student(self, *, school_id: int, admission_no: str, student: NewStudent, created_by: Optional[int]) -> int:
        raise NotImplementedError

    def search(
        self,
        *,
        school_id: int,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
        status: Optional[StudentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Student]:
        raise NotImplementedError

    def count(
        self,
        *,
        school_id: int,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
        status: Optional[StudentStatus] = None,
    ) -> int:
        raise NotImplementedError

    def update_student(self, *, school_id: int, student_id: int, fields: dict) -> bool:
        raise NotImplementedError

    def soft_delete(self, *, school_id: int, student_id: int, reason: Optional[str], deleted_at: datetime) -> bool:
        raise NotImplementedError

    def list_active_ids(
        self,
        *,
        school_id: int,
        class_id: Optional[int] = None,
        stream_id: Optional[int] = None,
    ) -> list[int]:
        raise NotImplementedError

    def move_class(self, *, school_id: int, from_class_id: int, to_class_id: int) -> int:
        raise NotImplementedError

    def class_breakdown(self, *, school_id: int, class_id: int) -> Sequence[dict]:
        """Rows of {status, gender, total} for non-deleted students of a class."""

        raise NotImplementedError


class ClassRepository(Protocol):
    def create_class(self, *, school_id: int, name: str, level: Optional[str]) -> int:
        raise NotImplementedError

    def get_by_id(self, *, school_id: int, class_id: int) -> Optional[SchoolClass]:
        raise NotImplementedError

    def list_for_school(self, school_id: int) -> Sequence[SchoolClass]:
        raise NotImplementedError

    def create_stream(self, *, school_id: int, class_id: int, name: str) -> int:
        raise NotImplementedError

    def get_stream(self, *, school_id: int, stream_id: int) -> Optional[Stream]:
        raise NotImplementedError

    def list_streams(self, *, school_id: int, class_id: int) -> Sequence[Stream]:
        raise NotImplementedError
