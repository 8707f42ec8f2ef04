from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import Role, UserStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_COLUMNS = """
    user_id, school_id, username, email, full_name, password_hash, role, status,
    onboarding_completed, last_login
"""


def _row_to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        school_id=int(row["school_id"]) if row.get("school_id") is not None else None,
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        status=UserStatus(row["status"]),
        onboarding_completed=bool(row.get("onboarding_completed")),
        last_login=row.get("last_login"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (user_id,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_login(self, identifier: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM users
                WHERE LOWER(username)=LOWER(%s) OR LOWER(email)=LOWER(%s)
                LIMIT 1
                """,
                (identifier, identifier),
            )
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def username_exists(self, username: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 FROM users WHERE LOWER(username)=LOWER(%s)", (username,))
            return fetchone(cur) is not None

    def email_exists(self, email: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 FROM users WHERE LOWER(email)=LOWER(%s)", (email,))
            return fetchone(cur) is not None

    def create_user(
        self,
        *,
        school_id: Optional[int],
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        role: Role,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(school_id, username, email, full_name, password_hash, role, status)
                VALUES(%s,%s,%s,%s,%s,%s,'active')
                """,
                (school_id, username, email, full_name, password_hash, role.value),
            )
            return int(cur.lastrowid)

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM users WHERE user_id=%s", (user_id,))
            return cur.rowcount > 0

    def set_status(self, user_id: int, *, status: UserStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET status=%s WHERE user_id=%s", (status.value, user_id))
            return cur.rowcount > 0

    def set_school(self, user_id: int, *, school_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET school_id=%s WHERE user_id=%s", (school_id, user_id))
            return cur.rowcount > 0

    def update_last_login(self, user_id: int, *, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET last_login=%s WHERE user_id=%s", (at, user_id))

    def mark_onboarding_completed(self, user_id: int, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET onboarding_completed=1, onboarding_completed_at=%s WHERE user_id=%s",
                (at, user_id),
            )
            return cur.rowcount > 0

    def list_for_school(self, school_id: int) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM users WHERE school_id=%s ORDER BY user_id DESC",
                (school_id,),
            )
            return [_row_to_user(r) for r in fetchall(cur)]
