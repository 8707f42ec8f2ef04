from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Callable, Optional

from ..audit.service import AuditService
from ..common.datetime_utils import now_local, parse_optional_date
from ..common.pagination import Page, normalize_page
from ..common.validators import optional_id, require_choice, require_email, require_non_empty
from ..core.enums import StudentStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from .admission import OPTIONAL_TEXT_FIELDS, format_admission_number, parse_gender, validate_admission
from .csv_io import read_students_csv, students_to_csv
from .model import SchoolClass, Stream, Student
from .repository import ClassRepository, StudentRepository

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    imported: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"imported": self.imported, "failed": len(self.errors), "errors": self.errors}


class StudentService:
    """Use cases: admissions and student records of one school."""

    def __init__(
        self,
        students: StudentRepository,
        classes: ClassRepository,
        audit: AuditService,
        *,
        transaction: Optional[Callable] = None,
    ):
        self._students = students
        self._classes = classes
        self._audit = audit
        self._transaction = transaction or nullcontext

    # Classes
    def create_class(self, *, school_id: int, name: str, level: Optional[str] = None) -> SchoolClass:
        name = require_non_empty(name, "Class name")
        class_id = self._classes.create_class(school_id=int(school_id), name=name, level=(level or "").strip() or None)
        return SchoolClass(class_id=class_id, school_id=int(school_id), name=name, level=(level or "").strip() or None)

    def list_classes(self, school_id: int) -> list[SchoolClass]:
        return list(self._classes.list_for_school(int(school_id)))

    def get_class(self, *, school_id: int, class_id: int) -> SchoolClass:
        school_class = self._classes.get_by_id(school_id=int(school_id), class_id=int(class_id))
        if not school_class:
            raise NotFoundError("Class not found")
        return school_class

    def create_stream(self, *, school_id: int, class_id: int, name: str) -> Stream:
        self.get_class(school_id=school_id, class_id=class_id)
        name = require_non_empty(name, "Stream name")
        stream_id = self._classes.create_stream(school_id=int(school_id), class_id=int(class_id), name=name)
        return Stream(stream_id=stream_id, school_id=int(school_id), class_id=int(class_id), name=name)

    def list_streams(self, *, school_id: int, class_id: int) -> list[Stream]:
        return list(self._classes.list_streams(school_id=int(school_id), class_id=int(class_id)))

    def _check_placement(self, school_id: int, class_id, stream_id) -> tuple[Optional[int], Optional[int]]:
        class_id, stream_id = optional_id(class_id, "Class"), optional_id(stream_id, "Stream")
        if class_id:
            self.get_class(school_id=school_id, class_id=class_id)
        if stream_id:
            stream = self._classes.get_stream(school_id=int(school_id), stream_id=stream_id)
            if not stream:
                raise NotFoundError("Stream not found")
            if class_id and stream.class_id != class_id:
                raise ValidationError("Stream does not belong to the selected class")
        return class_id, stream_id

    # Admissions
    def validate_admission(self, payload: dict, *, now: Optional[datetime] = None):
        return validate_admission(payload, today=(now or now_local()).date())

    def next_admission_number(self, *, school_id: int, year: int) -> str:
        seq = self._students.max_admission_sequence(school_id=int(school_id), year=int(year)) + 1
        return format_admission_number(int(year), seq)

    def admit_student(
        self,
        *,
        school_id: int,
        payload: dict,
        created_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Student:
        now = now or now_local()
        new_student = self.validate_admission(payload, now=now)
        self._check_placement(school_id, new_student.class_id, new_student.stream_id)

        duplicate = self._students.find_duplicate(
            school_id=int(school_id),
            first_name=new_student.first_name,
            last_name=new_student.last_name,
            date_of_birth=new_student.date_of_birth,
        )
        if duplicate:
            raise ConflictError(f"A student with the same name and date of birth exists ({duplicate.admission_no})")

        with self._transaction():
            admission_no = self.next_admission_number(school_id=school_id, year=now.year)
            student_id = self._students.create_student(
                school_id=int(school_id),
                admission_no=admission_no,
                student=new_student,
                created_by=created_by,
            )

        logger.info("Admitted student %s (%s) in school %s", student_id, admission_no, school_id)
        self._audit.log(
            "student_admitted",
            user_id=created_by,
            school_id=int(school_id),
            entity_type="student",
            entity_id=student_id,
            new_values={"admission_no": admission_no, "name": f"{new_student.first_name} {new_student.last_name}"},
        )
        return self.get_student(school_id=school_id, student_id=student_id)

    def get_student(self, *, school_id: int, student_id: int) -> Student:
        student = self._students.get_by_id(school_id=int(school_id), student_id=int(student_id))
        if not student:
            raise NotFoundError("Student not found")
        return student

    def list_students(
        self,
        *,
        school_id: int,
        page=1,
        limit=None,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Page:
        page, limit = normalize_page(page, limit)
        status_enum = require_choice(status, StudentStatus, "Status") if status else None
        search = (search or "").strip() or None
        filters = dict(school_id=int(school_id), search=search, class_id=class_id, status=status_enum)
        total = self._students.count(**filters)
        items = self._students.search(**filters, limit=limit, offset=(page - 1) * limit)
        return Page(items=items, page=page, limit=limit, total=total)

    def update_student(
        self,
        *,
        school_id: int,
        student_id: int,
        payload: dict,
        updated_by: Optional[int] = None,
    ) -> Student:
        current = self.get_student(school_id=school_id, student_id=student_id)
        fields: dict = {}

        for key in ("first_name", "last_name"):
            if key in payload:
                fields[key] = require_non_empty(payload[key], key.replace("_", " ").capitalize())
        for key in OPTIONAL_TEXT_FIELDS:
            if key in payload:
                fields[key] = (str(payload[key]).strip() or None) if payload[key] is not None else None
        if "email" in payload:
            fields["email"] = require_email(payload["email"]) if payload["email"] else None
        if "date_of_birth" in payload:
            dob = parse_optional_date(payload["date_of_birth"], "Date of birth")
            if not dob:
                raise ValidationError("Date of birth is required")
            fields["date_of_birth"] = dob
        if "gender" in payload:
            gender = parse_gender(payload["gender"])
            if not gender:
                raise ValidationError("Gender must be male or female")
            fields["gender"] = gender
        if "status" in payload:
            fields["status"] = require_choice(payload["status"], StudentStatus, "Status")
        if "class_id" in payload or "stream_id" in payload:
            class_id = payload.get("class_id", current.class_id)
            stream_id = payload.get("stream_id", current.stream_id if "class_id" not in payload else None)
            fields["class_id"], fields["stream_id"] = self._check_placement(school_id, class_id, stream_id)

        if not fields:
            return current

        self._students.update_student(school_id=int(school_id), student_id=int(student_id), fields=fields)
        self._audit.log(
            "student_updated",
            user_id=updated_by,
            school_id=int(school_id),
            entity_type="student",
            entity_id=int(student_id),
            old_values={k: getattr(current, k, None) for k in fields},
            new_values=fields,
        )
        return self.get_student(school_id=school_id, student_id=student_id)

    def delete_student(
        self,
        *,
        school_id: int,
        student_id: int,
        reason: Optional[str] = None,
        deleted_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        student = self.get_student(school_id=school_id, student_id=student_id)
        ok = self._students.soft_delete(
            school_id=int(school_id),
            student_id=int(student_id),
            reason=(reason or "").strip() or None,
            deleted_at=now or now_local(),
        )
        if not ok:
            raise ValidationError("Could not delete student")
        self._audit.log(
            "student_deleted",
            user_id=deleted_by,
            school_id=int(school_id),
            entity_type="student",
            entity_id=int(student_id),
            old_values={"admission_no": student.admission_no, "status": student.status.value},
            new_values={"reason": reason},
        )

    def promote_students(
        self,
        *,
        school_id: int,
        from_class_id: int,
        to_class_id: int,
        promoted_by: Optional[int] = None,
    ) -> int:
        if int(from_class_id) == int(to_class_id):
            raise ValidationError("Source and target class must be different")
        self.get_class(school_id=school_id, class_id=from_class_id)
        self.get_class(school_id=school_id, class_id=to_class_id)

        moved = self._students.move_class(
            school_id=int(school_id), from_class_id=int(from_class_id), to_class_id=int(to_class_id)
        )
        self._audit.log(
            "students_promoted",
            user_id=promoted_by,
            school_id=int(school_id),
            entity_type="class",
            entity_id=int(from_class_id),
            new_values={"to_class_id": int(to_class_id), "students": moved},
        )
        return moved

    def class_statistics(self, *, school_id: int, class_id: int) -> dict:
        school_class = self.get_class(school_id=school_id, class_id=class_id)
        by_status = {s.value: 0 for s in StudentStatus}
        by_gender: dict[str, int] = {}
        total = 0
        for row in self._students.class_breakdown(school_id=int(school_id), class_id=int(class_id)):
            count = int(row["total"])
            total += count
            by_status[row["status"]] = by_status.get(row["status"], 0) + count
            by_gender[row["gender"]] = by_gender.get(row["gender"], 0) + count
        return {
            "class_id": school_class.class_id,
            "class_name": school_class.name,
            "total": total,
            "by_status": by_status,
            "by_gender": by_gender,
        }

    # CSV
    def export_students_csv(
        self,
        *,
        school_id: int,
        class_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> bytes:
        status_enum = require_choice(status, StudentStatus, "Status") if status else None
        total = self._students.count(school_id=int(school_id), class_id=class_id, status=status_enum)
        students = self._students.search(
            school_id=int(school_id), class_id=class_id, status=status_enum, limit=max(total, 1), offset=0
        )
        return students_to_csv(students)

    def import_students_csv(
        self,
        *,
        school_id: int,
        source: IO | bytes | str,
        created_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ImportResult:
        """Admit every valid row; failures are reported per row (1-based, header excluded)."""
        try:
            rows = read_students_csv(source)
        except (ValueError, UnicodeDecodeError) as e:
            raise ValidationError(f"Could not read CSV file: {e}")

        result = ImportResult()
        for index, payload in enumerate(rows, start=1):
            try:
                self.admit_student(school_id=school_id, payload=payload, created_by=created_by, now=now)
                result.imported += 1
            except (ValidationError, ConflictError, NotFoundError) as e:
                result.errors.append({"row": index, "message": str(e)})

        logger.info("CSV import into school %s: %s imported, %s failed", school_id, result.imported, len(result.errors))
        return result
