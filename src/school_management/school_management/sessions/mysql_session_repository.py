from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Session
from .repository import SessionRepository


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_session(
        self,
        *,
        token: str,
        user_id: int,
        school_id: Optional[int],
        ip_address: Optional[str],
        user_agent: Optional[str],
        created_at: datetime,
        expires_at: datetime,
        stay_logged_in: bool,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO sessions(token, user_id, school_id, ip_address, user_agent,
                                     created_at, last_activity, expires_at, is_active, stay_logged_in)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,1,%s)
                """,
                (
                    token,
                    user_id,
                    school_id,
                    ip_address,
                    (user_agent or "")[:255] or None,
                    created_at,
                    created_at,
                    expires_at,
                    1 if stay_logged_in else 0,
                ),
            )
            return int(cur.lastrowid)

    def get_by_token(self, token: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT session_id, token, user_id, school_id, ip_address, user_agent, created_at,
                       last_activity, expires_at, is_active, stay_logged_in, logged_out_at
                FROM sessions
                WHERE token=%s
                """,
                (token,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Session(
                session_id=int(row["session_id"]),
                token=row["token"],
                user_id=int(row["user_id"]),
                school_id=row.get("school_id"),
                ip_address=row.get("ip_address"),
                user_agent=row.get("user_agent"),
                created_at=row["created_at"],
                last_activity=row["last_activity"],
                expires_at=row["expires_at"],
                is_active=bool(row["is_active"]),
                stay_logged_in=bool(row["stay_logged_in"]),
                logged_out_at=row.get("logged_out_at"),
            )

    def touch(self, token: str, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE sessions SET last_activity=%s WHERE token=%s AND is_active=1", (at, token))
            return cur.rowcount > 0

    def invalidate(self, token: str, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE sessions SET is_active=0, logged_out_at=%s WHERE token=%s AND is_active=1",
                (at, token),
            )
            return cur.rowcount > 0

    def invalidate_for_user(self, user_id: int, *, at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE sessions SET is_active=0, logged_out_at=%s WHERE user_id=%s AND is_active=1",
                (at, user_id),
            )
            return int(cur.rowcount)

    def delete_expired(self, *, before: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM sessions WHERE expires_at < %s OR is_active=0", (before,))
            return int(cur.rowcount)
