from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..common.money import to_money
from ..core.enums import BillingCycle, SubscriptionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, load_json
from .model import PaymentPlan, Subscription
from .repository import PlanRepository, SubscriptionRepository

_PLAN_SELECT = """
    SELECT plan_id, plan_code, plan_name, description, price_monthly, price_yearly, trial_period_days,
           is_trial, is_active, sort_order, features
    FROM payment_plans
"""

_SUBSCRIPTION_SELECT = """
    SELECT up.subscription_id, up.user_id, up.school_id, up.plan_id, up.billing_cycle, up.status, up.start_date,
           up.end_date, up.auto_renew, up.payment_method, up.transaction_ref, up.paid_at,
           p.plan_code, p.plan_name
    FROM user_payment_plans up
    JOIN payment_plans p ON p.plan_id = up.plan_id
"""


def _row_to_plan(row: dict) -> PaymentPlan:
    return PaymentPlan(
        plan_id=int(row["plan_id"]),
        plan_code=row["plan_code"],
        plan_name=row["plan_name"],
        description=row.get("description"),
        price_monthly=to_money(row["price_monthly"]),
        price_yearly=to_money(row["price_yearly"]),
        trial_period_days=int(row.get("trial_period_days") or 0),
        is_trial=bool(row.get("is_trial")),
        is_active=bool(row.get("is_active")),
        sort_order=int(row.get("sort_order") or 0),
        features=load_json(row.get("features"), []),
    )


def _row_to_subscription(row: dict) -> Subscription:
    return Subscription(
        subscription_id=int(row["subscription_id"]),
        user_id=int(row["user_id"]),
        school_id=row.get("school_id"),
        plan_id=int(row["plan_id"]),
        billing_cycle=BillingCycle(row["billing_cycle"]),
        status=SubscriptionStatus(row["status"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        auto_renew=bool(row.get("auto_renew")),
        payment_method=row.get("payment_method"),
        transaction_ref=row.get("transaction_ref"),
        paid_at=row.get("paid_at"),
        plan_code=row.get("plan_code"),
        plan_name=row.get("plan_name"),
    )


class MySQLPlanRepository(PlanRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_plans(self, *, active_only: bool = True) -> Sequence[PaymentPlan]:
        sql = _PLAN_SELECT + (" WHERE is_active=1" if active_only else "") + " ORDER BY sort_order, plan_id"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql)
            return [_row_to_plan(r) for r in fetchall(cur)]

    def get_plan(self, plan_id: int) -> Optional[PaymentPlan]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_PLAN_SELECT + " WHERE plan_id=%s", (plan_id,))
            row = fetchone(cur)
            return _row_to_plan(row) if row else None

    def get_plan_by_code(self, plan_code: str) -> Optional[PaymentPlan]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_PLAN_SELECT + " WHERE plan_code=%s", (plan_code,))
            row = fetchone(cur)
            return _row_to_plan(row) if row else None


class MySQLSubscriptionRepository(SubscriptionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SUBSCRIPTION_SELECT + " WHERE up.subscription_id=%s", (subscription_id,))
            row = fetchone(cur)
            return _row_to_subscription(row) if row else None

    def get_latest(self, user_id: int) -> Optional[Subscription]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SUBSCRIPTION_SELECT
                + """
                WHERE up.user_id=%s AND up.status IN ('trial','active')
                ORDER BY up.end_date DESC, up.subscription_id DESC
                LIMIT 1
                """,
                (user_id,),
            )
            row = fetchone(cur)
            return _row_to_subscription(row) if row else None

    def has_active(self, user_id: int, *, now: datetime, paid_only: bool = False) -> bool:
        statuses = "('active')" if paid_only else "('trial','active')"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT 1 FROM user_payment_plans
                WHERE user_id=%s AND status IN {statuses} AND end_date > %s
                LIMIT 1
                """,
                (user_id, now),
            )
            return fetchone(cur) is not None

    def create_subscription(
        self,
        *,
        user_id: int,
        school_id: Optional[int],
        plan_id: int,
        billing_cycle: BillingCycle,
        status: SubscriptionStatus,
        start_date: datetime,
        end_date: datetime,
        auto_renew: bool,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO user_payment_plans(user_id, school_id, plan_id, billing_cycle, status, start_date,
                                               end_date, auto_renew)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    user_id,
                    school_id,
                    plan_id,
                    billing_cycle.value,
                    status.value,
                    start_date,
                    end_date,
                    1 if auto_renew else 0,
                ),
            )
            return int(cur.lastrowid)

    def set_status(self, subscription_id: int, *, status: SubscriptionStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            if status == SubscriptionStatus.CANCELLED:
                cur.execute(
                    "UPDATE user_payment_plans SET status=%s, auto_renew=0 WHERE subscription_id=%s",
                    (status.value, subscription_id),
                )
            else:
                cur.execute(
                    "UPDATE user_payment_plans SET status=%s WHERE subscription_id=%s",
                    (status.value, subscription_id),
                )
            return cur.rowcount > 0

    def close_trial_rows(self, user_id: int, *, status: SubscriptionStatus) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE user_payment_plans SET status=%s WHERE user_id=%s AND status='trial'",
                (status.value, user_id),
            )
            return int(cur.rowcount)

    def set_end_date(self, subscription_id: int, *, end_date: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE user_payment_plans SET end_date=%s WHERE subscription_id=%s",
                (end_date, subscription_id),
            )
            return cur.rowcount > 0

    def record_payment(
        self,
        subscription_id: int,
        *,
        payment_method: Optional[str],
        transaction_ref: Optional[str],
        paid_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE user_payment_plans
                SET status='active', payment_method=%s, transaction_ref=%s, paid_at=%s
                WHERE subscription_id=%s
                """,
                (payment_method, transaction_ref, paid_at, subscription_id),
            )
            return cur.rowcount > 0

    def expire_due(self, *, now: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE user_payment_plans SET status='expired' WHERE status IN ('trial','active') AND end_date <= %s",
                (now,),
            )
            return int(cur.rowcount)
