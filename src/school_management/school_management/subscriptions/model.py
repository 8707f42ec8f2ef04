from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import BillingCycle, SubscriptionStatus


@dataclass(frozen=True)
class PaymentPlan:
    plan_id: int
    plan_code: str
    plan_name: str
    price_monthly: Decimal
    price_yearly: Decimal
    description: Optional[str] = None
    trial_period_days: int = 0
    is_trial: bool = False
    is_active: bool = True
    sort_order: int = 0
    features: list[str] = field(default_factory=list)

    def price_for(self, cycle: BillingCycle) -> Decimal:
        if cycle == BillingCycle.YEARLY:
            return self.price_yearly
        if cycle == BillingCycle.MONTHLY:
            return self.price_monthly
        return Decimal("0.00")

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "plan_code": self.plan_code,
            "plan_name": self.plan_name,
            "description": self.description,
            "price_monthly": str(self.price_monthly),
            "price_yearly": str(self.price_yearly),
            "trial_period_days": self.trial_period_days,
            "is_trial": self.is_trial,
            "features": self.features,
        }


@dataclass(frozen=True)
class Subscription:
    """A row of user_payment_plans."""

    subscription_id: int
    user_id: int
    plan_id: int
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    school_id: Optional[int] = None
    auto_renew: bool = True
    payment_method: Optional[str] = None
    transaction_ref: Optional[str] = None
    paid_at: Optional[datetime] = None
    plan_code: Optional[str] = None
    plan_name: Optional[str] = None

    def is_current(self, now: datetime) -> bool:
        return self.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE) and self.end_date > now

    def to_dict(self) -> dict:
        return {
            "subscription_id": self.subscription_id,
            "plan_id": self.plan_id,
            "plan_code": self.plan_code,
            "plan_name": self.plan_name,
            "billing_cycle": self.billing_cycle.value,
            "status": self.status.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "auto_renew": self.auto_renew,
            "payment_method": self.payment_method,
            "transaction_ref": self.transaction_ref,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
