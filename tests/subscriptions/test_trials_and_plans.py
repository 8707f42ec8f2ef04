from __future__ import annotations

from datetime import timedelta

import pytest

from fakes import make_plans, make_user
from src.school_management.school_management.core.enums import BillingCycle, SubscriptionStatus, TrialStatus
from src.school_management.school_management.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.school_management.school_management.subscriptions.service import period_days


@pytest.fixture
def owner(world):
    return world.users.add(make_user(9, school_id=1))


def test_trial_activation_creates_trial_subscription_row(world, owner, fixed_now):
    trial = world.trial_service.activate_trial(owner.user_id, school_id=1, now=fixed_now)

    assert trial.end_date == fixed_now + timedelta(days=30)
    subscription = world.subscriptions.get_latest(owner.user_id)
    assert subscription.status == SubscriptionStatus.TRIAL
    assert subscription.billing_cycle == BillingCycle.TRIAL
    assert subscription.auto_renew is False

    with pytest.raises(ConflictError):
        world.trial_service.activate_trial(owner.user_id, now=fixed_now + timedelta(days=1))


def test_trial_status_and_access(world, owner, fixed_now):
    assert world.trial_service.get_trial_status(owner.user_id, now=fixed_now)["has_trial"] is False

    world.trial_service.activate_trial(owner.user_id, now=fixed_now)
    status = world.trial_service.get_trial_status(owner.user_id, now=fixed_now + timedelta(hours=1))

    assert status["is_active"] is True
    assert status["days_remaining"] == 30
    assert world.trial_service.has_active_access(owner.user_id, now=fixed_now) is True
    assert world.trial_service.has_active_access(owner.user_id, now=fixed_now + timedelta(days=31)) is False


def test_extend_trial_moves_both_end_dates(world, owner, fixed_now):
    world.trial_service.activate_trial(owner.user_id, now=fixed_now)

    extended = world.trial_service.extend_trial(owner.user_id, days=7, now=fixed_now)

    assert extended.end_date == fixed_now + timedelta(days=37)
    assert world.subscriptions.get_latest(owner.user_id).end_date == fixed_now + timedelta(days=37)
    with pytest.raises(ValidationError):
        world.trial_service.extend_trial(owner.user_id, days=0, now=fixed_now)


def test_extend_without_trial(world, owner, fixed_now):
    with pytest.raises(NotFoundError):
        world.trial_service.extend_trial(owner.user_id, now=fixed_now)


def test_convert_trial_to_paid_plan(world, owner, fixed_now):
    world.trial_service.activate_trial(owner.user_id, now=fixed_now)

    subscription_id = world.trial_service.convert_trial_to_paid(
        owner.user_id, plan_id=2, billing_cycle="monthly", school_id=1, now=fixed_now
    )

    assert world.trials.get_latest(owner.user_id).status == TrialStatus.CONVERTED
    paid = world.subscriptions.get_by_id(subscription_id)
    assert paid.status == SubscriptionStatus.ACTIVE
    assert paid.end_date == fixed_now + timedelta(days=30)
    assert world.subscriptions.get_by_id(1).status == SubscriptionStatus.CANCELLED

    with pytest.raises(ValidationError):
        world.trial_service.convert_trial_to_paid(owner.user_id, plan_id=1, now=fixed_now)
    with pytest.raises(ValidationError):
        world.trial_service.convert_trial_to_paid(owner.user_id, plan_id=2, billing_cycle="trial", now=fixed_now)


def test_batch_expiry(world, owner, fixed_now):
    world.trial_service.activate_trial(owner.user_id, now=fixed_now - timedelta(days=31))

    counts = world.trial_service.update_expired_trials(now=fixed_now)

    assert counts == {"trials_expired": 1, "subscriptions_expired": 1}
    assert world.trial_service.get_trial_status(owner.user_id, now=fixed_now)["status"] == "expired"


def test_expire_trial_on_demand(world, owner, fixed_now):
    assert world.trial_service.expire_trial(owner.user_id) is False
    world.trial_service.activate_trial(owner.user_id, now=fixed_now)

    assert world.trial_service.expire_trial(owner.user_id) is True
    assert world.subscriptions.get_by_id(1).status == SubscriptionStatus.EXPIRED


def test_period_days():
    plans = {p.plan_code: p for p in make_plans().values()}
    assert period_days(plans["trial"], BillingCycle.TRIAL) == 30
    assert period_days(plans["basic"], BillingCycle.MONTHLY) == 30
    assert period_days(plans["basic"], BillingCycle.YEARLY) == 365


def test_plans_are_public_and_looked_up_by_code(world):
    assert [p.plan_code for p in world.subscription_service.list_plans()] == ["trial", "basic", "premium"]
    assert world.subscription_service.get_plan_by_code(" Premium ").plan_id == 3
    with pytest.raises(NotFoundError):
        world.subscription_service.get_plan_by_code("gold")


def test_select_change_and_cancel_plan(world, owner, fixed_now):
    basic = world.subscription_service.select_plan(owner.user_id, plan_id=2, school_id=1, now=fixed_now)
    assert basic.status == SubscriptionStatus.ACTIVE
    with pytest.raises(ConflictError):
        world.subscription_service.select_plan(owner.user_id, plan_id=3, now=fixed_now)

    premium = world.subscription_service.change_plan(owner.user_id, plan_id=3, billing_cycle="yearly", now=fixed_now)
    assert premium.plan_code == "premium"
    assert premium.school_id == 1
    assert world.subscriptions.get_by_id(basic.subscription_id).status == SubscriptionStatus.CANCELLED
    with pytest.raises(ValidationError):
        world.subscription_service.change_plan(owner.user_id, plan_id=3, billing_cycle="yearly", now=fixed_now)

    cancelled = world.subscription_service.cancel_subscription(owner.user_id, now=fixed_now)
    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert cancelled.auto_renew is False
    assert world.subscription_service.get_user_plan(owner.user_id, now=fixed_now) is None
    assert {"plan_selected", "plan_changed", "plan_cancelled"} <= set(world.audit.actions())


def test_trial_plan_cannot_be_billed(world, owner, fixed_now):
    with pytest.raises(ValidationError):
        world.subscription_service.select_plan(owner.user_id, plan_id=1, billing_cycle="monthly", now=fixed_now)
    with pytest.raises(ValidationError):
        world.subscription_service.select_plan(owner.user_id, plan_id=2, billing_cycle="trial", now=fixed_now)


def test_confirm_payment(world, owner, fixed_now):
    subscription = world.subscription_service.select_plan(owner.user_id, plan_id=2, now=fixed_now)

    with pytest.raises(AuthorizationError):
        world.subscription_service.confirm_payment(subscription.subscription_id, user_id=10)

    paid = world.subscription_service.confirm_payment(
        subscription.subscription_id, user_id=owner.user_id, payment_method="mobile_money", transaction_ref="TX1", now=fixed_now
    )
    assert paid.paid_at == fixed_now
    assert paid.transaction_ref == "TX1"
