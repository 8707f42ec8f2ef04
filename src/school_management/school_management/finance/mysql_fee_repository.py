from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..common.money import to_money
from ..core.enums import FeeAppliesTo, FeeStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import FeeItem, StudentFee
from .repository import FeeRepository

FEE_ITEM_COLUMNS = {
    "item_name": "item_name",
    "description": "description",
    "amount": "amount",
    "applies_to": "applies_to",
    "class_id": "class_id",
    "term": "term",
    "year": "year",
    "is_mandatory": "is_mandatory",
    "is_active": "is_active",
}

_FEE_ITEM_SELECT = """
    SELECT fee_item_id, school_id, item_name, description, amount, applies_to, class_id, term, year,
           is_mandatory, is_active
    FROM fee_items
"""

_STUDENT_FEE_SELECT = """
    SELECT sf.student_fee_id, sf.school_id, sf.student_id, sf.fee_item_id, sf.amount, sf.term, sf.year,
           sf.status, sf.bursary_applied, fi.item_name
    FROM student_fees sf
    JOIN fee_items fi ON fi.fee_item_id = sf.fee_item_id
"""


def _row_to_fee_item(row: dict) -> FeeItem:
    return FeeItem(
        fee_item_id=int(row["fee_item_id"]),
        school_id=int(row["school_id"]),
        item_name=row["item_name"],
        description=row.get("description"),
        amount=to_money(row["amount"]),
        applies_to=FeeAppliesTo(row["applies_to"]),
        class_id=row.get("class_id"),
        term=row.get("term"),
        year=row.get("year"),
        is_mandatory=bool(row.get("is_mandatory", True)),
        is_active=bool(row.get("is_active", True)),
    )


def _row_to_student_fee(row: dict) -> StudentFee:
    return StudentFee(
        student_fee_id=int(row["student_fee_id"]),
        school_id=int(row["school_id"]),
        student_id=int(row["student_id"]),
        fee_item_id=int(row["fee_item_id"]),
        amount=to_money(row["amount"]),
        term=int(row["term"]),
        year=int(row["year"]),
        status=FeeStatus(row["status"]),
        bursary_applied=bool(row.get("bursary_applied")),
        item_name=row.get("item_name"),
    )


class MySQLFeeRepository(FeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_fee_item(
        self,
        *,
        school_id: int,
        item_name: str,
        description: Optional[str],
        amount: Decimal,
        applies_to: FeeAppliesTo,
        class_id: Optional[int],
        term: Optional[int],
        year: Optional[int],
        is_mandatory: bool,
        created_by: Optional[int],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO fee_items(school_id, item_name, description, amount, applies_to, class_id,
                                      term, year, is_mandatory, is_active, created_by)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,1,%s)
                """,
                (
                    school_id,
                    item_name,
                    description,
                    amount,
                    applies_to.value,
                    class_id,
                    term,
                    year,
                    1 if is_mandatory else 0,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

    def get_fee_item(self, *, school_id: int, fee_item_id: int) -> Optional[FeeItem]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _FEE_ITEM_SELECT + " WHERE school_id=%s AND fee_item_id=%s AND deleted_at IS NULL",
                (school_id, fee_item_id),
            )
            row = fetchone(cur)
            return _row_to_fee_item(row) if row else None

    def list_fee_items(
        self,
        *,
        school_id: int,
        term: Optional[int] = None,
        year: Optional[int] = None,
        applies_to: Optional[FeeAppliesTo] = None,
        is_active: Optional[bool] = None,
    ) -> Sequence[FeeItem]:
        sql = _FEE_ITEM_SELECT + " WHERE school_id=%s AND deleted_at IS NULL"
        params: list = [school_id]
        if term is not None:
            sql += " AND (term=%s OR term IS NULL)"
            params.append(term)
        if year is not None:
            sql += " AND (year=%s OR year IS NULL)"
            params.append(year)
        if applies_to is not None:
            sql += " AND applies_to=%s"
            params.append(applies_to.value)
        if is_active is not None:
            sql += " AND is_active=%s"
            params.append(1 if is_active else 0)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " ORDER BY item_name", tuple(params))
            return [_row_to_fee_item(r) for r in fetchall(cur)]

    def update_fee_item(self, *, school_id: int, fee_item_id: int, fields: dict) -> bool:
        fields = {k: (1 if v else 0) if isinstance(v, bool) else v for k, v in fields.items()}
        assignments, params = build_update(fields, FEE_ITEM_COLUMNS)
        if not assignments:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE fee_items SET {assignments} WHERE school_id=%s AND fee_item_id=%s AND deleted_at IS NULL",
                (*params, school_id, fee_item_id),
            )
            return cur.rowcount > 0

    def soft_delete_fee_item(self, *, school_id: int, fee_item_id: int, deleted_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE fee_items SET deleted_at=%s, is_active=0
                WHERE school_id=%s AND fee_item_id=%s AND deleted_at IS NULL
                """,
                (deleted_at, school_id, fee_item_id),
            )
            return cur.rowcount > 0

    def get_student_fee(
        self, *, school_id: int, student_id: int, fee_item_id: int, term: int, year: int
    ) -> Optional[StudentFee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _STUDENT_FEE_SELECT
                + """
                WHERE sf.school_id=%s AND sf.student_id=%s AND sf.fee_item_id=%s
                  AND sf.term=%s AND sf.year=%s AND sf.deleted_at IS NULL
                """,
                (school_id, student_id, fee_item_id, term, year),
            )
            row = fetchone(cur)
            return _row_to_student_fee(row) if row else None

    def get_student_fee_by_id(self, *, school_id: int, student_fee_id: int) -> Optional[StudentFee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _STUDENT_FEE_SELECT + " WHERE sf.school_id=%s AND sf.student_fee_id=%s AND sf.deleted_at IS NULL",
                (school_id, student_fee_id),
            )
            row = fetchone(cur)
            return _row_to_student_fee(row) if row else None

    def create_student_fee(
        self,
        *,
        school_id: int,
        student_id: int,
        fee_item_id: int,
        amount: Decimal,
        term: int,
        year: int,
        allocated_by: Optional[int],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO student_fees(school_id, student_id, fee_item_id, amount, term, year, status, allocated_by)
                VALUES(%s,%s,%s,%s,%s,%s,'pending',%s)
                """,
                (school_id, student_id, fee_item_id, amount, term, year, allocated_by),
            )
            return int(cur.lastrowid)

    def update_student_fee_amount(self, *, student_fee_id: int, amount: Decimal, bursary_applied: Optional[bool] = None) -> bool:
        sql = "UPDATE student_fees SET amount=%s"
        params: list = [amount]
        if bursary_applied is not None:
            sql += ", bursary_applied=%s"
            params.append(1 if bursary_applied else 0)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " WHERE student_fee_id=%s", (*params, student_fee_id))
            return cur.rowcount > 0

    def set_student_fee_status(self, *, student_fee_id: int, status: FeeStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE student_fees SET status=%s WHERE student_fee_id=%s", (status.value, student_fee_id))
            return cur.rowcount > 0

    def list_student_fees(self, *, school_id: int, student_id: int, term: int, year: int) -> Sequence[StudentFee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _STUDENT_FEE_SELECT
                + """
                WHERE sf.school_id=%s AND sf.student_id=%s AND sf.term=%s AND sf.year=%s
                  AND sf.deleted_at IS NULL
                ORDER BY sf.student_fee_id
                """,
                (school_id, student_id, term, year),
            )
            return [_row_to_student_fee(r) for r in fetchall(cur)]

    def paid_for_student_fee(self, *, student_fee_id: int) -> Decimal:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS paid
                FROM transactions
                WHERE student_fee_id=%s AND status='completed'
                """,
                (student_fee_id,),
            )
            row = fetchone(cur)
            return to_money(row["paid"] if row else 0)

    def list_unallocated_students(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT s.student_id, s.admission_no, s.first_name, s.last_name, s.class_id, c.name AS class_name
                FROM students s
                LEFT JOIN classes c ON c.class_id = s.class_id
                WHERE s.school_id=%s AND s.status='active' AND s.deleted_at IS NULL
                  AND NOT EXISTS (
                      SELECT 1 FROM student_fees sf
                      WHERE sf.student_id = s.student_id AND sf.term=%s AND sf.year=%s AND sf.deleted_at IS NULL
                  )
                ORDER BY c.name, s.last_name, s.first_name
                """,
                (school_id, term, year),
            )
            return fetchall(cur)

    def list_allocated_fees(
        self,
        *,
        school_id: int,
        term: int,
        year: int,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> Sequence[dict]:
        sql = """
            SELECT sf.student_fee_id, sf.student_id, s.admission_no,
                   CONCAT(s.first_name, ' ', s.last_name) AS student_name, c.name AS class_name,
                   fi.fee_item_id, fi.item_name, sf.amount, sf.status, sf.bursary_applied,
                   COALESCE(SUM(CASE WHEN t.status='completed' THEN t.amount END), 0) AS amount_paid
            FROM student_fees sf
            JOIN students s ON s.student_id = sf.student_id
            JOIN fee_items fi ON fi.fee_item_id = sf.fee_item_id
            LEFT JOIN classes c ON c.class_id = s.class_id
            LEFT JOIN transactions t ON t.student_fee_id = sf.student_fee_id
            WHERE sf.school_id=%s AND sf.term=%s AND sf.year=%s AND sf.deleted_at IS NULL
        """
        params: list = [school_id, term, year]
        if student_id:
            sql += " AND sf.student_id=%s"
            params.append(int(student_id))
        if class_id:
            sql += " AND s.class_id=%s"
            params.append(int(class_id))
        sql += """
            GROUP BY sf.student_fee_id, sf.student_id, s.admission_no, student_name, c.name,
                     fi.fee_item_id, fi.item_name, sf.amount, sf.status, sf.bursary_applied
            ORDER BY student_name, fi.item_name
        """
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            rows = fetchall(cur)
        for r in rows:
            r["amount"] = to_money(r["amount"])
            r["amount_paid"] = to_money(r["amount_paid"])
            r["balance"] = r["amount"] - r["amount_paid"]
            r["bursary_applied"] = bool(r["bursary_applied"])
        return rows
