from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..common.money import to_money
from ..core.enums import TransactionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Transaction
from .repository import TransactionRepository

_SELECT = """
    SELECT t.transaction_id, t.school_id, t.student_id, t.student_fee_id, t.amount, t.payment_method_id,
           t.payer_name, t.relationship_to_learner, t.reference_number, t.term, t.year, t.notes,
           t.status, t.reversal_reason, t.recorded_by, t.transaction_date,
           CONCAT(s.first_name, ' ', s.last_name) AS student_name, s.admission_no,
           pm.name AS payment_method, fi.item_name
    FROM transactions t
    JOIN students s ON s.student_id = t.student_id
    LEFT JOIN payment_methods pm ON pm.payment_method_id = t.payment_method_id
    LEFT JOIN student_fees sf ON sf.student_fee_id = t.student_fee_id
    LEFT JOIN fee_items fi ON fi.fee_item_id = sf.fee_item_id
"""


def _row_to_transaction(row: dict) -> Transaction:
    return Transaction(
        transaction_id=int(row["transaction_id"]),
        school_id=int(row["school_id"]),
        student_id=int(row["student_id"]),
        student_fee_id=row.get("student_fee_id"),
        amount=to_money(row["amount"]),
        payment_method_id=row.get("payment_method_id"),
        payer_name=row.get("payer_name"),
        relationship_to_learner=row.get("relationship_to_learner"),
        reference_number=row.get("reference_number"),
        term=int(row["term"]),
        year=int(row["year"]),
        notes=row.get("notes"),
        status=TransactionStatus(row["status"]),
        reversal_reason=row.get("reversal_reason"),
        recorded_by=row.get("recorded_by"),
        transaction_date=row["transaction_date"],
        student_name=row.get("student_name"),
        admission_no=row.get("admission_no"),
        payment_method=row.get("payment_method"),
        item_name=row.get("item_name"),
    )


def _filters(school_id, student_id, term, year, payment_method_id, date_from, date_to) -> tuple[str, list]:
    where = ["t.school_id=%s"]
    params: list = [school_id]
    if student_id:
        where.append("t.student_id=%s")
        params.append(student_id)
    if term:
        where.append("t.term=%s")
        params.append(term)
    if year:
        where.append("t.year=%s")
        params.append(year)
    if payment_method_id:
        where.append("t.payment_method_id=%s")
        params.append(payment_method_id)
    if date_from:
        where.append("t.transaction_date >= %s")
        params.append(date_from)
    if date_to:
        where.append("t.transaction_date < %s")
        params.append(date_to)
    return " WHERE " + " AND ".join(where), params


class MySQLTransactionRepository(TransactionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_transaction(
        self,
        *,
        school_id: int,
        student_id: int,
        student_fee_id: Optional[int],
        amount: Decimal,
        payment_method_id: Optional[int],
        payer_name: Optional[str],
        relationship_to_learner: Optional[str],
        reference_number: Optional[str],
        term: int,
        year: int,
        notes: Optional[str],
        recorded_by: Optional[int],
        transaction_date: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO transactions(school_id, student_id, student_fee_id, amount, payment_method_id, payer_name,
                                         relationship_to_learner, reference_number, term, year, notes, status,
                                         recorded_by, transaction_date)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,'completed',%s,%s)
                """,
                (
                    school_id,
                    student_id,
                    student_fee_id,
                    amount,
                    payment_method_id,
                    payer_name,
                    relationship_to_learner,
                    reference_number,
                    term,
                    year,
                    notes,
                    recorded_by,
                    transaction_date,
                ),
            )
            return int(cur.lastrowid)

    def get_by_id(self, *, school_id: int, transaction_id: int) -> Optional[Transaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE t.school_id=%s AND t.transaction_id=%s", (school_id, transaction_id))
            row = fetchone(cur)
            return _row_to_transaction(row) if row else None

    def mark_reversed(self, *, school_id: int, transaction_id: int, reason: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE transactions SET status='reversed', reversal_reason=%s
                WHERE school_id=%s AND transaction_id=%s AND status='completed'
                """,
                (reason, school_id, transaction_id),
            )
            return cur.rowcount > 0

    def search(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        payment_method_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Transaction]:
        where, params = _filters(school_id, student_id, term, year, payment_method_id, date_from, date_to)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + where + " ORDER BY t.transaction_date DESC, t.transaction_id DESC LIMIT %s OFFSET %s",
                tuple(params + [limit, offset]),
            )
            return [_row_to_transaction(r) for r in fetchall(cur)]

    def count(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        payment_method_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        where, params = _filters(school_id, student_id, term, year, payment_method_id, date_from, date_to)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS total FROM transactions t" + where, tuple(params))
            return int(fetchone(cur)["total"])

    def student_summary(self, *, school_id: int, student_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT term, year, COUNT(*) AS payments, SUM(amount) AS total_paid,
                       MAX(transaction_date) AS last_payment
                FROM transactions
                WHERE school_id=%s AND student_id=%s AND status='completed'
                GROUP BY year, term
                ORDER BY year DESC, term DESC
                """,
                (school_id, student_id),
            )
            return fetchall(cur)

    def method_stats(
        self, *, school_id: int, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> Sequence[dict]:
        where = ["t.school_id=%s", "t.status='completed'"]
        params: list = [school_id]
        if date_from:
            where.append("t.transaction_date >= %s")
            params.append(date_from)
        if date_to:
            where.append("t.transaction_date < %s")
            params.append(date_to)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(pm.name, 'Unspecified') AS payment_method,
                       COUNT(*) AS payments, SUM(t.amount) AS total_amount
                FROM transactions t
                LEFT JOIN payment_methods pm ON pm.payment_method_id = t.payment_method_id
                WHERE """
                + " AND ".join(where)
                + " GROUP BY payment_method ORDER BY total_amount DESC",
                tuple(params),
            )
            return fetchall(cur)
