from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import Gender, StudentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import NewStudent, Student
from .repository import StudentRepository

_SELECT = """
    SELECT s.student_id, s.school_id, s.admission_no, s.first_name, s.last_name, s.other_name,
           s.date_of_birth, s.gender, s.status, s.admission_date, s.class_id, c.name AS class_name,
           s.stream_id, s.guardian_name, s.guardian_phone, s.phone, s.email, s.address, s.notes,
           s.deleted_at
    FROM students s
    LEFT JOIN classes c ON c.class_id = s.class_id
"""

UPDATABLE_COLUMNS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "other_name": "other_name",
    "date_of_birth": "date_of_birth",
    "gender": "gender",
    "class_id": "class_id",
    "stream_id": "stream_id",
    "status": "status",
    "guardian_name": "guardian_name",
    "guardian_phone": "guardian_phone",
    "phone": "phone",
    "email": "email",
    "address": "address",
    "notes": "notes",
}


def _row_to_student(row: dict) -> Student:
    return Student(
        student_id=int(row["student_id"]),
        school_id=int(row["school_id"]),
        admission_no=row["admission_no"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        other_name=row.get("other_name"),
        date_of_birth=row["date_of_birth"],
        gender=Gender(row["gender"]),
        status=StudentStatus(row["status"]),
        admission_date=row["admission_date"],
        class_id=row.get("class_id"),
        class_name=row.get("class_name"),
        stream_id=row.get("stream_id"),
        guardian_name=row.get("guardian_name"),
        guardian_phone=row.get("guardian_phone"),
        phone=row.get("phone"),
        email=row.get("email"),
        address=row.get("address"),
        notes=row.get("notes"),
        deleted_at=row.get("deleted_at"),
    )


def _filters(school_id: int, search, class_id, status) -> tuple[str, list]:
    where = ["s.school_id=%s", "s.deleted_at IS NULL"]
    params: list = [school_id]
    if search:
        like = f"%{search}%"
        where.append(
            "(s.first_name LIKE %s OR s.last_name LIKE %s OR s.admission_no LIKE %s "
            "OR CONCAT(s.first_name, ' ', s.last_name) LIKE %s)"
        )
        params += [like, like, like, like]
    if class_id:
        where.append("s.class_id=%s")
        params.append(int(class_id))
    if status:
        where.append("s.status=%s")
        params.append(status.value)
    return " AND ".join(where), params


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, *, school_id: int, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE s.school_id=%s AND s.student_id=%s AND s.deleted_at IS NULL",
                (school_id, student_id),
            )
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def get_by_admission_no(self, *, school_id: int, admission_no: str) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE s.school_id=%s AND s.admission_no=%s AND s.deleted_at IS NULL",
                (school_id, admission_no),
            )
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def find_duplicate(self, *, school_id: int, first_name: str, last_name: str, date_of_birth: date) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + """
                WHERE s.school_id=%s AND LOWER(s.first_name)=LOWER(%s) AND LOWER(s.last_name)=LOWER(%s)
                  AND s.date_of_birth=%s AND s.deleted_at IS NULL
                LIMIT 1
                """,
                (school_id, first_name, last_name, date_of_birth),
            )
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def max_admission_sequence(self, *, school_id: int, year: int) -> int:
        prefix = f"ADM-{year}-"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT MAX(CAST(SUBSTRING(admission_no, %s) AS UNSIGNED)) AS seq
                FROM students
                WHERE school_id=%s AND admission_no LIKE %s
                """,
                (len(prefix) + 1, school_id, prefix + "%"),
            )
            row = fetchone(cur)
            return int(row["seq"] or 0) if row else 0

    def create_student(self, *, school_id: int, admission_no: str, student: NewStudent, created_by: Optional[int]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO students(school_id, admission_no, first_name, last_name, other_name, date_of_birth,
                                     gender, class_id, stream_id, status, admission_date, guardian_name,
                                     guardian_phone, phone, email, address, notes, created_by)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,'active',%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    school_id,
                    admission_no,
                    student.first_name,
                    student.last_name,
                    student.other_name,
                    student.date_of_birth,
                    student.gender.value,
                    student.class_id,
                    student.stream_id,
                    student.admission_date,
                    student.guardian_name,
                    student.guardian_phone,
                    student.phone,
                    student.email,
                    student.address,
                    student.notes,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

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
        where, params = _filters(school_id, search, class_id, status)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + f" WHERE {where} ORDER BY s.last_name, s.first_name, s.student_id LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [_row_to_student(r) for r in fetchall(cur)]

    def count(
        self,
        *,
        school_id: int,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
        status: Optional[StudentStatus] = None,
    ) -> int:
        where, params = _filters(school_id, search, class_id, status)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM students s WHERE {where}", tuple(params))
            row = fetchone(cur)
            return int(row["total"]) if row else 0

    def update_student(self, *, school_id: int, student_id: int, fields: dict) -> bool:
        assignments, params = build_update(fields, UPDATABLE_COLUMNS)
        if not assignments:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE students SET {assignments} WHERE school_id=%s AND student_id=%s AND deleted_at IS NULL",
                (*params, school_id, student_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, *, school_id: int, student_id: int, reason: Optional[str], deleted_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE students
                SET status='inactive', deleted_at=%s, deletion_reason=%s
                WHERE school_id=%s AND student_id=%s AND deleted_at IS NULL
                """,
                (deleted_at, reason, school_id, student_id),
            )
            return cur.rowcount > 0

    def list_active_ids(
        self,
        *,
        school_id: int,
        class_id: Optional[int] = None,
        stream_id: Optional[int] = None,
    ) -> list[int]:
        sql = "SELECT student_id FROM students WHERE school_id=%s AND status='active' AND deleted_at IS NULL"
        params: list = [school_id]
        if class_id:
            sql += " AND class_id=%s"
            params.append(int(class_id))
        if stream_id:
            sql += " AND stream_id=%s"
            params.append(int(stream_id))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " ORDER BY student_id", tuple(params))
            return [int(r["student_id"]) for r in fetchall(cur)]

    def move_class(self, *, school_id: int, from_class_id: int, to_class_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE students
                SET class_id=%s, stream_id=NULL
                WHERE school_id=%s AND class_id=%s AND status='active' AND deleted_at IS NULL
                """,
                (to_class_id, school_id, from_class_id),
            )
            return int(cur.rowcount)

    def class_breakdown(self, *, school_id: int, class_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, gender, COUNT(*) AS total
                FROM students
                WHERE school_id=%s AND class_id=%s AND deleted_at IS NULL
                GROUP BY status, gender
                """,
                (school_id, class_id),
            )
            return fetchall(cur)
