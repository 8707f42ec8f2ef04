from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import days_remaining, now_local
from ..core.enums import SubscriptionStatus
from ..subscriptions.repository import SubscriptionRepository
from ..trials.service import TrialService
from .service import OnboardingService


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    access_type: Optional[str] = None
    days_remaining: int = 0

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "access_type": self.access_type,
            "days_remaining": self.days_remaining,
        }


class AccessService:
    """Dashboard gate: onboarding finished and a running trial or paid plan.

    Repository errors propagate; the caller answers 500 rather than granting access.
    """

    def __init__(self, onboarding: OnboardingService, trials: TrialService, subscriptions: SubscriptionRepository):
        self._onboarding = onboarding
        self._trials = trials
        self._subscriptions = subscriptions

    def can_access_dashboard(self, user_id: int, *, now: Optional[datetime] = None) -> AccessDecision:
        now = now or now_local()
        if not self._onboarding.is_completed(user_id):
            return AccessDecision(allowed=False, reason="onboarding_incomplete")

        trial = self._trials.get_active_trial(user_id, now=now)
        if trial:
            return AccessDecision(
                allowed=True,
                reason="access_granted",
                access_type="trial",
                days_remaining=days_remaining(trial.end_date, now),
            )

        subscription = self._subscriptions.get_latest(int(user_id))
        if subscription and subscription.is_current(now):
            return AccessDecision(
                allowed=True,
                reason="access_granted",
                access_type="trial" if subscription.status == SubscriptionStatus.TRIAL else "subscription",
                days_remaining=days_remaining(subscription.end_date, now),
            )
        return AccessDecision(allowed=False, reason="no_active_plan")
