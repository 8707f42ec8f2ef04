from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import days_remaining, now_local
from ..common.validators import require_choice
from ..core.constants import DEFAULT_TRIAL_DAYS, DEFAULT_TRIAL_EXTENSION_DAYS, TRIAL_PLAN_CODE
from ..core.enums import BillingCycle, SubscriptionStatus, TrialStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..subscriptions.repository import PlanRepository, SubscriptionRepository
from ..subscriptions.service import period_days
from .model import UserTrial
from .repository import TrialRepository

logger = logging.getLogger(__name__)


class TrialService:
    """Use cases: the free trial period of a school owner."""

    def __init__(
        self,
        trials: TrialRepository,
        plans: PlanRepository,
        subscriptions: SubscriptionRepository,
        *,
        transaction: Optional[Callable] = None,
        default_days: int = DEFAULT_TRIAL_DAYS,
    ):
        self._trials = trials
        self._plans = plans
        self._subscriptions = subscriptions
        self._transaction = transaction or nullcontext
        self._default_days = int(default_days)

    def activate_trial(
        self,
        user_id: int,
        *,
        school_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> UserTrial:
        now = now or now_local()
        plan = self._plans.get_plan_by_code(TRIAL_PLAN_CODE)
        days = (plan.trial_period_days if plan else 0) or self._default_days

        with self._transaction():
            existing = self._trials.get_active(int(user_id))
            if existing and existing.is_running(now):
                raise ConflictError("An active trial already exists")

            end = now + timedelta(days=days)
            trial_id = self._trials.create_trial(user_id=int(user_id), start_date=now, end_date=end)
            if plan:
                self._subscriptions.create_subscription(
                    user_id=int(user_id),
                    school_id=school_id,
                    plan_id=plan.plan_id,
                    billing_cycle=BillingCycle.TRIAL,
                    status=SubscriptionStatus.TRIAL,
                    start_date=now,
                    end_date=end,
                    auto_renew=False,
                )
            else:
                logger.warning("No '%s' payment plan configured; trial %s has no subscription row", TRIAL_PLAN_CODE, trial_id)

        logger.info("Trial %s activated for user %s until %s", trial_id, user_id, end)
        return UserTrial(trial_id=trial_id, user_id=int(user_id), start_date=now, end_date=end, created_at=now)

    def get_active_trial(self, user_id: int, *, now: Optional[datetime] = None) -> Optional[UserTrial]:
        trial = self._trials.get_active(int(user_id))
        if trial and trial.is_running(now or now_local()):
            return trial
        return None

    def get_trial_status(self, user_id: int, *, now: Optional[datetime] = None) -> dict:
        now = now or now_local()
        trial = self._trials.get_active(int(user_id)) or self._trials.get_latest(int(user_id))
        if not trial:
            return {"has_trial": False, "is_active": False, "status": None, "days_remaining": 0}
        return {
            "has_trial": True,
            "is_active": trial.is_running(now),
            "status": trial.status.value,
            "start_date": trial.start_date.isoformat(),
            "end_date": trial.end_date.isoformat(),
            "days_remaining": days_remaining(trial.end_date, now) if trial.status == TrialStatus.ACTIVE else 0,
        }

    def has_active_access(self, user_id: int, *, now: Optional[datetime] = None) -> bool:
        now = now or now_local()
        if self.get_active_trial(user_id, now=now):
            return True
        return self._subscriptions.has_active(int(user_id), now=now, paid_only=True)

    def expire_trial(self, user_id: int) -> bool:
        trial = self._trials.get_active(int(user_id))
        if not trial:
            return False
        with self._transaction():
            self._trials.set_status(trial.trial_id, status=TrialStatus.EXPIRED)
            self._subscriptions.close_trial_rows(int(user_id), status=SubscriptionStatus.EXPIRED)
        logger.info("Trial %s of user %s expired", trial.trial_id, user_id)
        return True

    def convert_trial_to_paid(
        self,
        user_id: int,
        *,
        plan_id: int,
        billing_cycle: str = BillingCycle.MONTHLY.value,
        school_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Close the trial and start a paid subscription; returns the subscription id."""
        now = now or now_local()
        cycle = require_choice(billing_cycle, BillingCycle, "Billing cycle")
        if cycle == BillingCycle.TRIAL:
            raise ValidationError("Choose a monthly or yearly billing cycle")
        plan = self._plans.get_plan(int(plan_id))
        if not plan or not plan.is_active:
            raise NotFoundError("Payment plan not found")
        if plan.is_trial:
            raise ValidationError("Choose a paid plan")

        with self._transaction():
            trial = self._trials.get_active(int(user_id))
            if trial:
                self._trials.set_status(trial.trial_id, status=TrialStatus.CONVERTED)
            self._subscriptions.close_trial_rows(int(user_id), status=SubscriptionStatus.CANCELLED)
            subscription_id = self._subscriptions.create_subscription(
                user_id=int(user_id),
                school_id=school_id,
                plan_id=plan.plan_id,
                billing_cycle=cycle,
                status=SubscriptionStatus.ACTIVE,
                start_date=now,
                end_date=now + timedelta(days=period_days(plan, cycle)),
                auto_renew=True,
            )

        logger.info("User %s converted to plan %s (%s)", user_id, plan.plan_code, cycle.value)
        return subscription_id

    def extend_trial(
        self,
        user_id: int,
        *,
        days: int = DEFAULT_TRIAL_EXTENSION_DAYS,
        now: Optional[datetime] = None,
    ) -> UserTrial:
        try:
            days = int(days)
        except (TypeError, ValueError):
            raise ValidationError("Days must be a number")
        if days <= 0:
            raise ValidationError("Days must be greater than 0")

        trial = self.get_active_trial(user_id, now=now)
        if not trial:
            raise NotFoundError("No active trial to extend")

        end = trial.end_date + timedelta(days=days)
        with self._transaction():
            self._trials.set_end_date(trial.trial_id, end_date=end)
            subscription = self._subscriptions.get_latest(int(user_id))
            if subscription and subscription.status == SubscriptionStatus.TRIAL:
                self._subscriptions.set_end_date(subscription.subscription_id, end_date=end)

        logger.info("Trial %s of user %s extended by %s days", trial.trial_id, user_id, days)
        return UserTrial(
            trial_id=trial.trial_id,
            user_id=trial.user_id,
            start_date=trial.start_date,
            end_date=end,
            status=trial.status,
            created_at=trial.created_at,
        )

    def update_expired_trials(self, *, now: Optional[datetime] = None) -> dict:
        """Batch job: expire trials and subscriptions whose end date has passed."""
        now = now or now_local()
        with self._transaction():
            trials = self._trials.expire_due(now=now)
            subscriptions = self._subscriptions.expire_due(now=now)
        logger.info("Expired %s trials and %s subscriptions", trials, subscriptions)
        return {"trials_expired": trials, "subscriptions_expired": subscriptions}
