from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import PaymentMethod
from .repository import PaymentMethodRepository


def _row_to_method(row: dict) -> PaymentMethod:
    return PaymentMethod(
        payment_method_id=int(row["payment_method_id"]),
        school_id=int(row["school_id"]),
        name=row["name"],
        description=row.get("description"),
        is_active=bool(row.get("is_active", True)),
    )


class MySQLPaymentMethodRepository(PaymentMethodRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_method(self, *, school_id: int, name: str, description: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO payment_methods(school_id, name, description, is_active) VALUES(%s,%s,%s,1)",
                (school_id, name, description),
            )
            return int(cur.lastrowid)

    def get_by_id(self, *, school_id: int, payment_method_id: int) -> Optional[PaymentMethod]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT payment_method_id, school_id, name, description, is_active
                FROM payment_methods
                WHERE school_id=%s AND payment_method_id=%s
                """,
                (school_id, payment_method_id),
            )
            row = fetchone(cur)
            return _row_to_method(row) if row else None

    def list_for_school(self, *, school_id: int, active_only: bool = True) -> Sequence[PaymentMethod]:
        sql = "SELECT payment_method_id, school_id, name, description, is_active FROM payment_methods WHERE school_id=%s"
        if active_only:
            sql += " AND is_active=1"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " ORDER BY name", (school_id,))
            return [_row_to_method(r) for r in fetchall(cur)]
