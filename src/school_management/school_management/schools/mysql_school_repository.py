from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchone
from .model import School
from .repository import SchoolRepository

EDITABLE_COLUMNS = {
    "name": "name",
    "school_type": "school_type",
    "address": "address",
    "region": "region",
    "district": "district",
    "phone": "phone",
    "email": "email",
    "website": "website",
    "currency": "currency",
    "timezone": "timezone",
    "owner_name": "owner_name",
    "owner_phone": "owner_phone",
    "owner_email": "owner_email",
}


class MySQLSchoolRepository(SchoolRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, school_id: int) -> Optional[School]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT school_id, name, school_code, school_type, currency, timezone, address, region,
                       district, phone, email, website, owner_name, owner_phone, owner_email, created_at
                FROM schools
                WHERE school_id=%s
                """,
                (school_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return School(**row)

    def code_exists(self, school_code: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 FROM schools WHERE school_code=%s", (school_code,))
            return fetchone(cur) is not None

    def create_school(self, *, school_code: str, fields: dict, created_by: Optional[int]) -> int:
        columns = [EDITABLE_COLUMNS[k] for k in fields if k in EDITABLE_COLUMNS]
        values = [fields[k] for k in fields if k in EDITABLE_COLUMNS]
        columns += ["school_code", "created_by"]
        values += [school_code, created_by]
        placeholders = ",".join(["%s"] * len(columns))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO schools({', '.join(columns)}) VALUES({placeholders})",
                tuple(values),
            )
            return int(cur.lastrowid)

    def update_school(self, school_id: int, *, fields: dict) -> bool:
        assignments, params = build_update(fields, EDITABLE_COLUMNS)
        if not assignments:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE schools SET {assignments} WHERE school_id=%s", (*params, school_id))
            return cur.rowcount > 0
