from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..audit.service import AuditService
from ..common.datetime_utils import days_remaining, now_local
from ..common.validators import require_choice
from ..core.constants import DEFAULT_TRIAL_DAYS, MONTHLY_PLAN_DAYS, YEARLY_PLAN_DAYS
from ..core.enums import BillingCycle, SubscriptionStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .model import PaymentPlan, Subscription
from .repository import PlanRepository, SubscriptionRepository

logger = logging.getLogger(__name__)


def period_days(plan: PaymentPlan, cycle: BillingCycle, *, default_trial_days: int = DEFAULT_TRIAL_DAYS) -> int:
    if cycle == BillingCycle.TRIAL:
        return plan.trial_period_days or default_trial_days
    if cycle == BillingCycle.YEARLY:
        return YEARLY_PLAN_DAYS
    return MONTHLY_PLAN_DAYS


class SubscriptionService:
    """Use cases: payment plans and the plan a school owner is on."""

    def __init__(
        self,
        plans: PlanRepository,
        subscriptions: SubscriptionRepository,
        audit: AuditService,
        *,
        transaction: Optional[Callable] = None,
        default_trial_days: int = DEFAULT_TRIAL_DAYS,
    ):
        self._plans = plans
        self._subscriptions = subscriptions
        self._audit = audit
        self._transaction = transaction or nullcontext
        self._default_trial_days = int(default_trial_days)

    def list_plans(self) -> list[PaymentPlan]:
        return list(self._plans.list_plans(active_only=True))

    def get_plan(self, plan_id: int) -> PaymentPlan:
        plan = self._plans.get_plan(int(plan_id))
        if not plan:
            raise NotFoundError("Payment plan not found")
        return plan

    def get_plan_by_code(self, plan_code: str) -> PaymentPlan:
        plan = self._plans.get_plan_by_code((plan_code or "").strip().lower())
        if not plan:
            raise NotFoundError("Payment plan not found")
        return plan

    def get_user_plan(self, user_id: int, *, now: Optional[datetime] = None) -> Optional[dict]:
        now = now or now_local()
        current = self._subscriptions.get_latest(int(user_id))
        if not current:
            return None
        return {
            **current.to_dict(),
            "is_active": current.is_current(now),
            "days_remaining": days_remaining(current.end_date, now),
        }

    def has_active_subscription(self, user_id: int, *, now: Optional[datetime] = None, paid_only: bool = False) -> bool:
        return self._subscriptions.has_active(int(user_id), now=now or now_local(), paid_only=paid_only)

    def _current(self, user_id: int, now: datetime) -> Optional[Subscription]:
        current = self._subscriptions.get_latest(int(user_id))
        return current if current and current.is_current(now) else None

    def _start(
        self,
        user_id: int,
        plan: PaymentPlan,
        cycle: BillingCycle,
        *,
        school_id: Optional[int],
        now: datetime,
    ) -> int:
        if cycle == BillingCycle.TRIAL and not plan.is_trial:
            raise ValidationError("This plan has no trial period")
        if cycle != BillingCycle.TRIAL and plan.is_trial:
            raise ValidationError("Trial plans cannot be billed")

        days = period_days(plan, cycle, default_trial_days=self._default_trial_days)
        return self._subscriptions.create_subscription(
            user_id=int(user_id),
            school_id=school_id,
            plan_id=plan.plan_id,
            billing_cycle=cycle,
            status=SubscriptionStatus.TRIAL if cycle == BillingCycle.TRIAL else SubscriptionStatus.ACTIVE,
            start_date=now,
            end_date=now + timedelta(days=days),
            auto_renew=cycle != BillingCycle.TRIAL,
        )

    def select_plan(
        self,
        user_id: int,
        *,
        plan_id: int,
        billing_cycle: str = BillingCycle.MONTHLY.value,
        school_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        now = now or now_local()
        cycle = require_choice(billing_cycle, BillingCycle, "Billing cycle")
        plan = self.get_plan(plan_id)
        if not plan.is_active:
            raise ValidationError("This plan is no longer available")

        with self._transaction():
            if self._current(user_id, now):
                raise ConflictError("You already have an active plan")
            subscription_id = self._start(user_id, plan, cycle, school_id=school_id, now=now)

        logger.info("User %s selected plan %s (%s)", user_id, plan.plan_code, cycle.value)
        self._audit.log(
            "plan_selected",
            user_id=int(user_id),
            school_id=school_id,
            entity_type="subscription",
            entity_id=subscription_id,
            new_values={"plan": plan.plan_code, "billing_cycle": cycle.value},
        )
        return self._subscriptions.get_by_id(subscription_id)

    def change_plan(
        self,
        user_id: int,
        *,
        plan_id: int,
        billing_cycle: str = BillingCycle.MONTHLY.value,
        now: Optional[datetime] = None,
    ) -> Subscription:
        now = now or now_local()
        cycle = require_choice(billing_cycle, BillingCycle, "Billing cycle")
        plan = self.get_plan(plan_id)
        if not plan.is_active:
            raise ValidationError("This plan is no longer available")

        with self._transaction():
            current = self._current(user_id, now)
            if not current:
                raise NotFoundError("No active plan to change")
            if current.plan_id == plan.plan_id and current.billing_cycle == cycle:
                raise ValidationError("You are already on this plan")
            self._subscriptions.set_status(current.subscription_id, status=SubscriptionStatus.CANCELLED)
            subscription_id = self._start(user_id, plan, cycle, school_id=current.school_id, now=now)

        self._audit.log(
            "plan_changed",
            user_id=int(user_id),
            school_id=current.school_id,
            entity_type="subscription",
            entity_id=subscription_id,
            old_values={"plan": current.plan_code, "billing_cycle": current.billing_cycle.value},
            new_values={"plan": plan.plan_code, "billing_cycle": cycle.value},
        )
        return self._subscriptions.get_by_id(subscription_id)

    def cancel_subscription(self, user_id: int, *, now: Optional[datetime] = None) -> Subscription:
        now = now or now_local()
        current = self._current(user_id, now)
        if not current:
            raise NotFoundError("No active plan to cancel")
        self._subscriptions.set_status(current.subscription_id, status=SubscriptionStatus.CANCELLED)
        logger.info("User %s cancelled subscription %s", user_id, current.subscription_id)
        self._audit.log(
            "plan_cancelled",
            user_id=int(user_id),
            school_id=current.school_id,
            entity_type="subscription",
            entity_id=current.subscription_id,
        )
        return self._subscriptions.get_by_id(current.subscription_id)

    def confirm_payment(
        self,
        subscription_id: int,
        *,
        user_id: int,
        payment_method: Optional[str] = None,
        transaction_ref: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        subscription = self._subscriptions.get_by_id(int(subscription_id))
        if not subscription:
            raise NotFoundError("Subscription not found")
        if subscription.user_id != int(user_id):
            raise AuthorizationError("This subscription belongs to another account")
        if subscription.billing_cycle == BillingCycle.TRIAL:
            raise ValidationError("Trial subscriptions need no payment")
        if subscription.status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
            raise ValidationError("Subscription is no longer active")

        self._subscriptions.record_payment(
            subscription.subscription_id,
            payment_method=(payment_method or "").strip() or None,
            transaction_ref=(transaction_ref or "").strip() or None,
            paid_at=now or now_local(),
        )
        self._audit.log(
            "subscription_paid",
            user_id=int(user_id),
            school_id=subscription.school_id,
            entity_type="subscription",
            entity_id=subscription.subscription_id,
            new_values={"payment_method": payment_method, "transaction_ref": transaction_ref},
        )
        return self._subscriptions.get_by_id(subscription.subscription_id)

    def expire_due(self, *, now: Optional[datetime] = None) -> int:
        return self._subscriptions.expire_due(now=now or now_local())
