from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..common.money import to_money
from ..core.enums import BursaryStatus, BursaryType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Bursary, BursaryAdjustment
from .repository import BursaryRepository

_SELECT = """
    SELECT b.bursary_id, b.school_id, b.student_id, b.bursary_type, b.value, b.reason, b.term, b.year,
           b.sponsor_name, b.sponsor_contact, b.valid_until, b.status, b.applied_by, b.applied_at,
           b.approved_by, b.approved_at, b.rejected_by, b.rejected_at, b.rejection_reason,
           CONCAT(s.first_name, ' ', s.last_name) AS student_name, s.admission_no
    FROM bursaries b
    JOIN students s ON s.student_id = b.student_id
"""


def _row_to_bursary(row: dict) -> Bursary:
    return Bursary(
        bursary_id=int(row["bursary_id"]),
        school_id=int(row["school_id"]),
        student_id=int(row["student_id"]),
        bursary_type=BursaryType(row["bursary_type"]),
        value=to_money(row["value"]),
        term=int(row["term"]),
        year=int(row["year"]),
        status=BursaryStatus(row["status"]),
        reason=row.get("reason"),
        sponsor_name=row.get("sponsor_name"),
        sponsor_contact=row.get("sponsor_contact"),
        valid_until=row.get("valid_until"),
        applied_by=row.get("applied_by"),
        applied_at=row.get("applied_at"),
        approved_by=row.get("approved_by"),
        approved_at=row.get("approved_at"),
        rejected_by=row.get("rejected_by"),
        rejected_at=row.get("rejected_at"),
        rejection_reason=row.get("rejection_reason"),
        student_name=row.get("student_name"),
        admission_no=row.get("admission_no"),
    )


def _filters(school_id, student_id, status, term, year) -> tuple[str, list]:
    where = ["b.school_id=%s"]
    params: list = [school_id]
    if student_id:
        where.append("b.student_id=%s")
        params.append(student_id)
    if status:
        where.append("b.status=%s")
        params.append(status.value)
    if term:
        where.append("b.term=%s")
        params.append(term)
    if year:
        where.append("b.year=%s")
        params.append(year)
    return " WHERE " + " AND ".join(where), params


class MySQLBursaryRepository(BursaryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_bursary(
        self,
        *,
        school_id: int,
        student_id: int,
        bursary_type: BursaryType,
        value: Decimal,
        reason: Optional[str],
        term: int,
        year: int,
        sponsor_name: Optional[str],
        sponsor_contact: Optional[str],
        valid_until: Optional[date],
        applied_by: Optional[int],
        applied_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO bursaries(school_id, student_id, bursary_type, value, reason, term, year, sponsor_name,
                                      sponsor_contact, valid_until, status, applied_by, applied_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,'pending',%s,%s)
                """,
                (
                    school_id,
                    student_id,
                    bursary_type.value,
                    value,
                    reason,
                    term,
                    year,
                    sponsor_name,
                    sponsor_contact,
                    valid_until,
                    applied_by,
                    applied_at,
                ),
            )
            return int(cur.lastrowid)

    def get_by_id(self, *, school_id: int, bursary_id: int) -> Optional[Bursary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE b.school_id=%s AND b.bursary_id=%s", (school_id, bursary_id))
            row = fetchone(cur)
            return _row_to_bursary(row) if row else None

    def set_decision(
        self,
        *,
        school_id: int,
        bursary_id: int,
        status: BursaryStatus,
        decided_by: Optional[int],
        decided_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        if status == BursaryStatus.APPROVED:
            sql = """
                UPDATE bursaries SET status='approved', approved_by=%s, approved_at=%s
                WHERE school_id=%s AND bursary_id=%s AND status='pending'
            """
            params = (decided_by, decided_at, school_id, bursary_id)
        else:
            sql = """
                UPDATE bursaries SET status='rejected', rejected_by=%s, rejected_at=%s, rejection_reason=%s
                WHERE school_id=%s AND bursary_id=%s AND status='pending'
            """
            params = (decided_by, decided_at, rejection_reason, school_id, bursary_id)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return cur.rowcount > 0

    def add_adjustment(self, adjustment: BursaryAdjustment) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO bursary_adjustments(bursary_id, student_fee_id, original_amount, adjustment_amount,
                                                adjusted_amount)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (
                    adjustment.bursary_id,
                    adjustment.student_fee_id,
                    adjustment.original_amount,
                    adjustment.adjustment_amount,
                    adjustment.adjusted_amount,
                ),
            )
            return int(cur.lastrowid)

    def list_adjustments(self, *, bursary_id: int) -> Sequence[BursaryAdjustment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT bursary_id, student_fee_id, original_amount, adjustment_amount, adjusted_amount
                FROM bursary_adjustments WHERE bursary_id=%s ORDER BY adjustment_id
                """,
                (bursary_id,),
            )
            return [
                BursaryAdjustment(
                    bursary_id=int(r["bursary_id"]),
                    student_fee_id=int(r["student_fee_id"]),
                    original_amount=to_money(r["original_amount"]),
                    adjustment_amount=to_money(r["adjustment_amount"]),
                    adjusted_amount=to_money(r["adjusted_amount"]),
                )
                for r in fetchall(cur)
            ]

    def search(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        status: Optional[BursaryStatus] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Bursary]:
        where, params = _filters(school_id, student_id, status, term, year)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + where + " ORDER BY b.applied_at DESC, b.bursary_id DESC LIMIT %s OFFSET %s",
                tuple(params + [limit, offset]),
            )
            return [_row_to_bursary(r) for r in fetchall(cur)]

    def count(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        status: Optional[BursaryStatus] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
    ) -> int:
        where, params = _filters(school_id, student_id, status, term, year)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS total FROM bursaries b" + where, tuple(params))
            return int(fetchone(cur)["total"])

    def stats(self, *, school_id: int, term: Optional[int] = None, year: Optional[int] = None) -> dict:
        where, params = _filters(school_id, None, None, term, year)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(b.status='pending'), 0) AS pending,
                       COALESCE(SUM(b.status='approved'), 0) AS approved,
                       COALESCE(SUM(b.status='rejected'), 0) AS rejected,
                       COALESCE(SUM(b.bursary_type='full_sponsorship' AND b.status='approved'), 0)
                           AS full_sponsorships
                FROM bursaries b"""
                + where,
                tuple(params),
            )
            counts = fetchone(cur) or {}
            cur.execute(
                """
                SELECT COALESCE(SUM(a.adjustment_amount), 0) AS total_waived
                FROM bursary_adjustments a
                JOIN bursaries b ON b.bursary_id = a.bursary_id"""
                + where,
                tuple(params),
            )
            waived = fetchone(cur) or {}
        return {
            "total": int(counts.get("total") or 0),
            "pending": int(counts.get("pending") or 0),
            "approved": int(counts.get("approved") or 0),
            "rejected": int(counts.get("rejected") or 0),
            "full_sponsorships": int(counts.get("full_sponsorships") or 0),
            "total_waived": to_money(waived.get("total_waived")),
        }
