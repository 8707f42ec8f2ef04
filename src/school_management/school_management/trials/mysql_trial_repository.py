from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.enums import TrialStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import UserTrial
from .repository import TrialRepository

_SELECT = "SELECT trial_id, user_id, start_date, end_date, status, created_at FROM user_trials"


def _row_to_trial(row: dict) -> UserTrial:
    return UserTrial(
        trial_id=int(row["trial_id"]),
        user_id=int(row["user_id"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        status=TrialStatus(row["status"]),
        created_at=row.get("created_at"),
    )


class MySQLTrialRepository(TrialRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_active(self, user_id: int) -> Optional[UserTrial]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE user_id=%s AND status='active' ORDER BY end_date DESC LIMIT 1",
                (user_id,),
            )
            row = fetchone(cur)
            return _row_to_trial(row) if row else None

    def get_latest(self, user_id: int) -> Optional[UserTrial]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE user_id=%s ORDER BY created_at DESC, trial_id DESC LIMIT 1", (user_id,))
            row = fetchone(cur)
            return _row_to_trial(row) if row else None

    def create_trial(self, *, user_id: int, start_date: datetime, end_date: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO user_trials(user_id, start_date, end_date, status) VALUES(%s,%s,%s,'active')",
                (user_id, start_date, end_date),
            )
            return int(cur.lastrowid)

    def set_status(self, trial_id: int, *, status: TrialStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE user_trials SET status=%s WHERE trial_id=%s", (status.value, trial_id))
            return cur.rowcount > 0

    def set_end_date(self, trial_id: int, *, end_date: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE user_trials SET end_date=%s WHERE trial_id=%s", (end_date, trial_id))
            return cur.rowcount > 0

    def expire_due(self, *, now: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE user_trials SET status='expired' WHERE status='active' AND end_date <= %s", (now,))
            return int(cur.rowcount)
