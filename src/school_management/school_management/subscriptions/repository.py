from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import BillingCycle, SubscriptionStatus
from .model import PaymentPlan, Subscription


class PlanRepository(Protocol):
    def list_plans(self, *, active_only: bool = True) -> Sequence[PaymentPlan]:
        raise NotImplementedError

    def get_plan(self, plan_id: int) -> Optional[PaymentPlan]:
        raise NotImplementedError

    def get_plan_by_code(self, plan_code: str) -> Optional[PaymentPlan]:
        raise NotImplementedError


class SubscriptionRepository(Protocol):
    def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        raise NotImplementedError

    def get_latest(self, user_id: int) -> Optional[Subscription]:
        """Most recent trial/active row, whatever its end date."""

        raise NotImplementedError

    def has_active(self, user_id: int, *, now: datetime, paid_only: bool = False) -> bool:
        raise NotImplementedError

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
        raise NotImplementedError

    def set_status(self, subscription_id: int, *, status: SubscriptionStatus) -> bool:
        raise NotImplementedError

    def close_trial_rows(self, user_id: int, *, status: SubscriptionStatus) -> int:
        raise NotImplementedError

    def set_end_date(self, subscription_id: int, *, end_date: datetime) -> bool:
        raise NotImplementedError

    def record_payment(
        self,
        subscription_id: int,
        *,
        payment_method: Optional[str],
        transaction_ref: Optional[str],
        paid_at: datetime,
    ) -> bool:
        raise NotImplementedError

    def expire_due(self, *, now: datetime) -> int:
        raise NotImplementedError
