from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .repository import PredictionRepository


class MySQLPredictionRepository(PredictionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def payment_history(self, *, school_id: int, student_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT transaction_date, amount FROM transactions
                WHERE school_id=%s AND student_id=%s AND status='completed'
                ORDER BY transaction_date
                """,
                (school_id, student_id),
            )
            return fetchall(cur)

    def account(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT total_fees, amount_paid, balance, created_at FROM student_account
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s
                """,
                (school_id, student_id, term, year),
            )
            return fetchone(cur)

    def completion_history(self, *, school_id: int, student_id: int) -> dict:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total_terms, COUNT(CASE WHEN balance <= 0 THEN 1 END) AS completed_terms
                FROM student_account
                WHERE school_id=%s AND student_id=%s
                """,
                (school_id, student_id),
            )
            return fetchone(cur) or {"total_terms": 0, "completed_terms": 0}

    def payment_count(self, *, school_id: int, student_id: int, term: int, year: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total FROM transactions
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s AND status='completed'
                """,
                (school_id, student_id, term, year),
            )
            return int(fetchone(cur)["total"])

    def monthly_totals(self, *, school_id: int, since: datetime) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT YEAR(transaction_date) AS year, MONTH(transaction_date) AS month,
                       COALESCE(SUM(amount), 0) AS total_collected, COUNT(*) AS transaction_count
                FROM transactions
                WHERE school_id=%s AND status='completed' AND transaction_date >= %s
                GROUP BY YEAR(transaction_date), MONTH(transaction_date)
                ORDER BY year, month
                """,
                (school_id, since),
            )
            return fetchall(cur)

    def class_accounts(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT c.class_id, c.name AS class_name,
                       COUNT(DISTINCT s.student_id) AS total_students,
                       COALESCE(SUM(sa.total_fees), 0) AS total_fees,
                       COALESCE(SUM(sa.amount_paid), 0) AS amount_paid,
                       COALESCE(SUM(sa.balance), 0) AS balance,
                       COUNT(CASE WHEN sa.balance <= 0 AND sa.total_fees > 0 THEN 1 END) AS fully_paid_count,
                       COUNT(CASE WHEN sa.balance > 0 AND sa.balance < sa.total_fees THEN 1 END) AS partial_count,
                       COUNT(CASE WHEN sa.total_fees > 0 AND sa.balance >= sa.total_fees THEN 1 END) AS not_paid_count
                FROM classes c
                LEFT JOIN students s ON s.class_id = c.class_id AND s.status='active' AND s.deleted_at IS NULL
                LEFT JOIN student_account sa ON sa.student_id = s.student_id AND sa.term=%s AND sa.year=%s
                WHERE c.school_id=%s
                GROUP BY c.class_id, c.name
                """,
                (term, year, school_id),
            )
            return fetchall(cur)

    def amounts_since(self, *, school_id: int, since: datetime) -> Sequence:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT amount FROM transactions
                WHERE school_id=%s AND status='completed' AND transaction_date >= %s
                """,
                (school_id, since),
            )
            return [r["amount"] for r in fetchall(cur)]

    def payments_since(self, *, school_id: int, since: datetime) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT t.transaction_id, t.student_id, t.amount, t.transaction_date, t.reference_number,
                       s.admission_no, s.first_name, s.last_name, c.name AS class_name,
                       pm.name AS payment_method
                FROM transactions t
                JOIN students s ON s.student_id = t.student_id
                LEFT JOIN classes c ON c.class_id = s.class_id
                LEFT JOIN payment_methods pm ON pm.payment_method_id = t.payment_method_id
                WHERE t.school_id=%s AND t.status='completed' AND t.transaction_date >= %s
                ORDER BY t.transaction_date DESC
                """,
                (school_id, since),
            )
            return fetchall(cur)

    def high_risk_students(
        self, *, school_id: int, term: int, year: int, max_payment_rate: float, limit: int
    ) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT s.student_id, s.admission_no, s.first_name, s.last_name, c.name AS class_name,
                       sa.total_fees, sa.amount_paid, sa.balance,
                       CASE WHEN sa.total_fees > 0 THEN sa.amount_paid / sa.total_fees * 100 ELSE 0 END
                           AS payment_rate
                FROM students s
                JOIN student_account sa ON sa.student_id = s.student_id AND sa.term=%s AND sa.year=%s
                LEFT JOIN classes c ON c.class_id = s.class_id
                WHERE s.school_id=%s AND s.status='active' AND s.deleted_at IS NULL AND sa.balance > 0
                HAVING payment_rate < %s
                ORDER BY sa.balance DESC
                LIMIT %s
                """,
                (term, year, school_id, max_payment_rate, limit),
            )
            return fetchall(cur)
