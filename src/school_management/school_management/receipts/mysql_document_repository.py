from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..common.money import to_money
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import Invoice, Receipt
from .repository import DocumentRepository

_RECEIPT_SELECT = """
    SELECT receipt_id, school_id, transaction_id, student_id, receipt_number, amount, previous_balance,
           current_balance, created_at
    FROM receipts
"""


def _row_to_receipt(row: dict) -> Receipt:
    return Receipt(
        receipt_id=int(row["receipt_id"]),
        school_id=int(row["school_id"]),
        transaction_id=int(row["transaction_id"]),
        student_id=int(row["student_id"]),
        receipt_number=row["receipt_number"],
        amount=to_money(row["amount"]),
        previous_balance=to_money(row["previous_balance"]),
        current_balance=to_money(row["current_balance"]),
        created_at=row["created_at"],
    )


class MySQLDocumentRepository(DocumentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_receipt_by_transaction(self, *, school_id: int, transaction_id: int) -> Optional[Receipt]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_RECEIPT_SELECT + " WHERE school_id=%s AND transaction_id=%s", (school_id, transaction_id))
            row = fetchone(cur)
            return _row_to_receipt(row) if row else None

    def get_receipt_by_number(self, *, school_id: int, receipt_number: str) -> Optional[Receipt]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_RECEIPT_SELECT + " WHERE school_id=%s AND receipt_number=%s", (school_id, receipt_number))
            row = fetchone(cur)
            return _row_to_receipt(row) if row else None

    def find_receipt(self, receipt_number: str) -> Optional[Receipt]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_RECEIPT_SELECT + " WHERE receipt_number=%s", (receipt_number,))
            row = fetchone(cur)
            return _row_to_receipt(row) if row else None

    def create_receipt(
        self,
        *,
        school_id: int,
        transaction_id: int,
        student_id: int,
        receipt_number: str,
        amount: Decimal,
        previous_balance: Decimal,
        current_balance: Decimal,
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO receipts(school_id, transaction_id, student_id, receipt_number, amount,
                                     previous_balance, current_balance, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    school_id,
                    transaction_id,
                    student_id,
                    receipt_number,
                    amount,
                    previous_balance,
                    current_balance,
                    created_at,
                ),
            )
            return int(cur.lastrowid)

    def list_receipts(self, *, school_id: int, student_id: Optional[int] = None, limit: int = 100) -> Sequence[Receipt]:
        sql = _RECEIPT_SELECT + " WHERE school_id=%s"
        params: list = [school_id]
        if student_id:
            sql += " AND student_id=%s"
            params.append(student_id)
        sql += " ORDER BY created_at DESC, receipt_id DESC LIMIT %s"
        params.append(limit)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_receipt(r) for r in fetchall(cur)]

    def create_invoice(
        self,
        *,
        school_id: int,
        student_id: int,
        invoice_number: str,
        term: int,
        year: int,
        total_amount: Decimal,
        items: list[dict],
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO invoices(school_id, student_id, invoice_number, term, year, total_amount, items,
                                     created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (school_id, student_id, invoice_number, term, year, total_amount, dump_json(items), created_at),
            )
            return int(cur.lastrowid)

    def get_invoice(self, *, school_id: int, invoice_number: str) -> Optional[Invoice]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT invoice_id, school_id, student_id, invoice_number, term, year, total_amount, items, created_at
                FROM invoices WHERE school_id=%s AND invoice_number=%s
                """,
                (school_id, invoice_number),
            )
            row = fetchone(cur)
        if not row:
            return None
        return Invoice(
            invoice_id=int(row["invoice_id"]),
            school_id=int(row["school_id"]),
            student_id=int(row["student_id"]),
            invoice_number=row["invoice_number"],
            term=int(row["term"]),
            year=int(row["year"]),
            total_amount=to_money(row["total_amount"]),
            items=load_json(row["items"], []),
            created_at=row["created_at"],
        )
