from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import OnboardingStep, StepStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, load_json
from .model import StepRecord
from .repository import OnboardingRepository


class MySQLOnboardingRepository(OnboardingRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def ensure_steps(self, user_id: int, steps: Sequence[OnboardingStep]) -> int:
        added = 0
        with db_cursor(self._conn_factory) as (_, cur):
            for step in steps:
                cur.execute(
                    """
                    INSERT IGNORE INTO onboarding_steps(user_id, step_name, step_order, status)
                    VALUES(%s,%s,%s,'pending')
                    """,
                    (user_id, step.value, step.order),
                )
                added += cur.rowcount
        return added

    def list_steps(self, user_id: int) -> Sequence[StepRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, step_name, status, step_data, started_at, completed_at
                FROM onboarding_steps
                WHERE user_id=%s
                ORDER BY step_order
                """,
                (user_id,),
            )
            rows = fetchall(cur)
        return [
            StepRecord(
                user_id=int(r["user_id"]),
                step=OnboardingStep(r["step_name"]),
                status=StepStatus(r["status"]),
                step_data=load_json(r.get("step_data"), {}),
                started_at=r.get("started_at"),
                completed_at=r.get("completed_at"),
            )
            for r in rows
        ]

    def update_step(
        self,
        user_id: int,
        *,
        step: OnboardingStep,
        status: StepStatus,
        step_data: Optional[dict],
        at: datetime,
    ) -> bool:
        sets = ["status=%s"]
        params: list = [status.value]
        if step_data is not None:
            sets.append("step_data=%s")
            params.append(dump_json(step_data))
        if status == StepStatus.IN_PROGRESS:
            sets.append("started_at=COALESCE(started_at, %s)")
            params.append(at)
        elif status == StepStatus.COMPLETED:
            sets.append("started_at=COALESCE(started_at, %s)")
            sets.append("completed_at=%s")
            params.extend([at, at])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE onboarding_steps SET {', '.join(sets)} WHERE user_id=%s AND step_name=%s",
                tuple(params + [user_id, step.value]),
            )
            return cur.rowcount > 0
