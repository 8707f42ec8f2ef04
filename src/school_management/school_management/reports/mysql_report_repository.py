from __future__ import annotations

from datetime import datetime
from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .repository import ReportRepository

_COMPLETED_IN_WINDOW = "t.school_id=%s AND t.status='completed' AND t.transaction_date >= %s AND t.transaction_date < %s"


class MySQLReportRepository(ReportRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _one(self, sql: str, params: tuple) -> dict:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return fetchone(cur) or {}

    def _all(self, sql: str, params: tuple) -> list[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return fetchall(cur)

    def collection_summary(self, *, school_id: int, start: datetime, end: datetime) -> dict:
        return self._one(
            f"""
            SELECT COUNT(*) AS transaction_count,
                   COUNT(DISTINCT t.student_id) AS unique_payers,
                   COALESCE(SUM(t.amount), 0) AS total_collected,
                   COALESCE(AVG(t.amount), 0) AS avg_transaction,
                   COALESCE(MIN(t.amount), 0) AS min_transaction,
                   COALESCE(MAX(t.amount), 0) AS max_transaction
            FROM transactions t
            WHERE {_COMPLETED_IN_WINDOW}
            """,
            (school_id, start, end),
        )

    def method_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        return self._all(
            """
            SELECT pm.payment_method_id, pm.name AS payment_method,
                   COUNT(t.transaction_id) AS transaction_count,
                   COALESCE(SUM(t.amount), 0) AS total_amount,
                   COALESCE(AVG(t.amount), 0) AS avg_amount
            FROM payment_methods pm
            LEFT JOIN transactions t ON t.payment_method_id = pm.payment_method_id
                AND t.status='completed' AND t.transaction_date >= %s AND t.transaction_date < %s
            WHERE pm.school_id=%s
            GROUP BY pm.payment_method_id, pm.name
            ORDER BY total_amount DESC
            """,
            (start, end, school_id),
        )

    def top_payers(self, *, school_id: int, start: datetime, end: datetime, limit: int = 10) -> Sequence[dict]:
        return self._all(
            f"""
            SELECT s.student_id, s.admission_no, s.first_name, s.last_name, c.name AS class_name,
                   SUM(t.amount) AS total_paid, COUNT(t.transaction_id) AS payment_count
            FROM transactions t
            JOIN students s ON s.student_id = t.student_id
            LEFT JOIN classes c ON c.class_id = s.class_id
            WHERE {_COMPLETED_IN_WINDOW}
            GROUP BY s.student_id, s.admission_no, s.first_name, s.last_name, c.name
            ORDER BY total_paid DESC
            LIMIT %s
            """,
            (school_id, start, end, limit),
        )

    def hourly_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        return self._all(
            f"""
            SELECT HOUR(t.transaction_date) AS hour, COUNT(*) AS transaction_count,
                   COALESCE(SUM(t.amount), 0) AS amount
            FROM transactions t
            WHERE {_COMPLETED_IN_WINDOW}
            GROUP BY HOUR(t.transaction_date)
            ORDER BY hour
            """,
            (school_id, start, end),
        )

    def daily_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        return self._all(
            f"""
            SELECT DATE(t.transaction_date) AS date, COUNT(*) AS transaction_count,
                   COALESCE(SUM(t.amount), 0) AS total_collected
            FROM transactions t
            WHERE {_COMPLETED_IN_WINDOW}
            GROUP BY DATE(t.transaction_date)
            ORDER BY date
            """,
            (school_id, start, end),
        )

    def weekly_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        return self._all(
            f"""
            SELECT WEEK(t.transaction_date, 1) AS week_number, DATE(MIN(t.transaction_date)) AS week_start,
                   COUNT(*) AS transaction_count, COALESCE(SUM(t.amount), 0) AS total_collected
            FROM transactions t
            WHERE {_COMPLETED_IN_WINDOW}
            GROUP BY WEEK(t.transaction_date, 1)
            ORDER BY week_number
            """,
            (school_id, start, end),
        )

    def class_collections(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        return self._all(
            """
            SELECT c.class_id, c.name AS class_name,
                   COUNT(DISTINCT s.student_id) AS student_count,
                   COUNT(t.transaction_id) AS transaction_count,
                   COALESCE(SUM(t.amount), 0) AS total_collected
            FROM classes c
            LEFT JOIN students s ON s.class_id = c.class_id AND s.deleted_at IS NULL
            LEFT JOIN transactions t ON t.student_id = s.student_id
                AND t.status='completed' AND t.transaction_date >= %s AND t.transaction_date < %s
            WHERE c.school_id=%s
            GROUP BY c.class_id, c.name
            ORDER BY total_collected DESC
            """,
            (start, end, school_id),
        )

    def outstanding_summary(self, *, school_id: int, year: int) -> dict:
        return self._one(
            """
            SELECT COUNT(*) AS students_with_balance, COALESCE(SUM(balance), 0) AS total_outstanding
            FROM student_account
            WHERE school_id=%s AND year=%s AND balance > 0
            """,
            (school_id, year),
        )

    def top_debtors(self, *, school_id: int, year: int, limit: int = 20) -> Sequence[dict]:
        return self._all(
            """
            SELECT s.student_id, s.admission_no, s.first_name, s.last_name, c.name AS class_name,
                   sa.term, sa.total_fees, sa.amount_paid, sa.balance
            FROM student_account sa
            JOIN students s ON s.student_id = sa.student_id
            LEFT JOIN classes c ON c.class_id = s.class_id
            WHERE sa.school_id=%s AND sa.year=%s AND sa.balance > 0
            ORDER BY sa.balance DESC
            LIMIT %s
            """,
            (school_id, year, limit),
        )

    def term_collection_summary(self, *, school_id: int, term: int, year: int) -> dict:
        return self._one(
            """
            SELECT COUNT(*) AS transaction_count, COUNT(DISTINCT student_id) AS unique_payers,
                   COALESCE(SUM(amount), 0) AS total_collected
            FROM transactions
            WHERE school_id=%s AND term=%s AND year=%s AND status='completed'
            """,
            (school_id, term, year),
        )

    def allocation_summary(self, *, school_id: int, term: int, year: int) -> dict:
        return self._one(
            """
            SELECT COUNT(*) AS students_with_fees,
                   COALESCE(SUM(total_fees), 0) AS total_allocated,
                   COALESCE(SUM(amount_paid), 0) AS total_collected,
                   COALESCE(SUM(balance), 0) AS total_outstanding
            FROM student_account
            WHERE school_id=%s AND term=%s AND year=%s AND total_fees > 0
            """,
            (school_id, term, year),
        )

    def class_performance(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        return self._all(
            """
            SELECT c.class_id, c.name AS class_name,
                   COUNT(DISTINCT s.student_id) AS total_students,
                   COALESCE(SUM(sa.total_fees), 0) AS total_fees,
                   COALESCE(SUM(sa.amount_paid), 0) AS amount_paid,
                   COALESCE(SUM(sa.balance), 0) AS balance,
                   COUNT(CASE WHEN sa.balance = 0 AND sa.total_fees > 0 THEN 1 END) AS fully_paid_count,
                   COUNT(CASE WHEN sa.balance > 0 AND sa.balance < sa.total_fees THEN 1 END) AS partial_count,
                   COUNT(CASE WHEN sa.total_fees > 0 AND sa.balance >= sa.total_fees THEN 1 END) AS not_paid_count,
                   COALESCE(AVG(sa.amount_paid), 0) AS avg_paid_per_student
            FROM classes c
            LEFT JOIN students s ON s.class_id = c.class_id AND s.status='active' AND s.deleted_at IS NULL
            LEFT JOIN student_account sa ON sa.student_id = s.student_id AND sa.term=%s AND sa.year=%s
            WHERE c.school_id=%s
            GROUP BY c.class_id, c.name
            ORDER BY c.name
            """,
            (term, year, school_id),
        )

    def fee_item_performance(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        return self._all(
            """
            SELECT fi.fee_item_id, fi.item_name,
                   COUNT(sf.student_fee_id) AS allocation_count,
                   COALESCE(SUM(sf.amount), 0) AS total_allocated,
                   COALESCE(SUM((
                       SELECT COALESCE(SUM(t.amount), 0) FROM transactions t
                       WHERE t.student_fee_id = sf.student_fee_id AND t.status='completed'
                   )), 0) AS total_collected,
                   COUNT(CASE WHEN sf.status='paid' THEN 1 END) AS fully_paid_count
            FROM fee_items fi
            LEFT JOIN student_fees sf ON sf.fee_item_id = fi.fee_item_id
                AND sf.term=%s AND sf.year=%s AND sf.deleted_at IS NULL
            WHERE fi.school_id=%s AND fi.deleted_at IS NULL
            GROUP BY fi.fee_item_id, fi.item_name
            ORDER BY total_allocated DESC
            """,
            (term, year, school_id),
        )

    def student_payment_status(self, *, school_id: int, term: int, year: int) -> dict:
        return self._one(
            """
            SELECT COUNT(CASE WHEN balance <= 0 THEN 1 END) AS fully_paid,
                   COUNT(CASE WHEN balance > 0 AND balance < total_fees THEN 1 END) AS partial,
                   COUNT(CASE WHEN total_fees > 0 AND balance >= total_fees THEN 1 END) AS not_paid,
                   COUNT(*) AS total_students
            FROM student_account
            WHERE school_id=%s AND term=%s AND year=%s
            """,
            (school_id, term, year),
        )

    def term_comparison(self, *, school_id: int, year: int) -> Sequence[dict]:
        return self._all(
            """
            SELECT term, COUNT(DISTINCT student_id) AS unique_payers, COUNT(*) AS transaction_count,
                   COALESCE(SUM(amount), 0) AS total_collected, COALESCE(AVG(amount), 0) AS avg_transaction
            FROM transactions
            WHERE school_id=%s AND year=%s AND status='completed'
            GROUP BY term
            ORDER BY term
            """,
            (school_id, year),
        )
