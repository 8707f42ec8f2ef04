from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..common.money import to_money
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import StudentAccount
from .repository import AccountRepository


def _row_to_account(row: dict) -> StudentAccount:
    return StudentAccount(
        school_id=int(row["school_id"]),
        student_id=int(row["student_id"]),
        term=int(row["term"]),
        year=int(row["year"]),
        total_fees=to_money(row["total_fees"]),
        amount_paid=to_money(row["amount_paid"]),
        balance=to_money(row["balance"]),
        last_payment_date=row.get("last_payment_date"),
    )


class MySQLAccountRepository(AccountRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def total_fees(self, *, school_id: int, student_id: int, term: int, year: int) -> Decimal:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM student_fees
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s AND deleted_at IS NULL
                """,
                (school_id, student_id, term, year),
            )
            return to_money(fetchone(cur)["total"])

    def total_paid(self, *, school_id: int, student_id: int, term: int, year: int) -> Decimal:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM transactions
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s AND status='completed'
                """,
                (school_id, student_id, term, year),
            )
            return to_money(fetchone(cur)["total"])

    def last_payment_date(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[datetime]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT MAX(transaction_date) AS last_payment
                FROM transactions
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s AND status='completed'
                """,
                (school_id, student_id, term, year),
            )
            row = fetchone(cur)
            return row["last_payment"] if row else None

    def upsert_account(
        self,
        *,
        school_id: int,
        student_id: int,
        term: int,
        year: int,
        total_fees: Decimal,
        amount_paid: Decimal,
        balance: Decimal,
        last_payment_date: Optional[datetime],
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO student_account(school_id, student_id, term, year, total_fees, amount_paid, balance,
                                            last_payment_date)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    total_fees=VALUES(total_fees),
                    amount_paid=VALUES(amount_paid),
                    balance=VALUES(balance),
                    last_payment_date=VALUES(last_payment_date)
                """,
                (school_id, student_id, term, year, total_fees, amount_paid, balance, last_payment_date),
            )

    def get_account(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[StudentAccount]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT school_id, student_id, term, year, total_fees, amount_paid, balance, last_payment_date
                FROM student_account
                WHERE school_id=%s AND student_id=%s AND term=%s AND year=%s
                """,
                (school_id, student_id, term, year),
            )
            row = fetchone(cur)
            return _row_to_account(row) if row else None

    def list_accounts_for_student(self, *, school_id: int, student_id: int) -> Sequence[StudentAccount]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT school_id, student_id, term, year, total_fees, amount_paid, balance, last_payment_date
                FROM student_account
                WHERE school_id=%s AND student_id=%s
                ORDER BY year, term
                """,
                (school_id, student_id),
            )
            return [_row_to_account(r) for r in fetchall(cur)]
