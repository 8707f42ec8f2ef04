from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import SchoolClass, Stream
from .repository import ClassRepository


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_class(self, *, school_id: int, name: str, level: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO classes(school_id, name, level) VALUES(%s,%s,%s)",
                (school_id, name, level),
            )
            return int(cur.lastrowid)

    def get_by_id(self, *, school_id: int, class_id: int) -> Optional[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT class_id, school_id, name, level FROM classes WHERE school_id=%s AND class_id=%s",
                (school_id, class_id),
            )
            row = fetchone(cur)
            return SchoolClass(**row) if row else None

    def list_for_school(self, school_id: int) -> Sequence[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT class_id, school_id, name, level FROM classes WHERE school_id=%s ORDER BY name",
                (school_id,),
            )
            return [SchoolClass(**r) for r in fetchall(cur)]

    def create_stream(self, *, school_id: int, class_id: int, name: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO streams(school_id, class_id, name) VALUES(%s,%s,%s)",
                (school_id, class_id, name),
            )
            return int(cur.lastrowid)

    def get_stream(self, *, school_id: int, stream_id: int) -> Optional[Stream]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT stream_id, school_id, class_id, name FROM streams WHERE school_id=%s AND stream_id=%s",
                (school_id, stream_id),
            )
            row = fetchone(cur)
            return Stream(**row) if row else None

    def list_streams(self, *, school_id: int, class_id: int) -> Sequence[Stream]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT stream_id, school_id, class_id, name
                FROM streams
                WHERE school_id=%s AND class_id=%s
                ORDER BY name
                """,
                (school_id, class_id),
            )
            return [Stream(**r) for r in fetchall(cur)]
