from __future__ import annotations

from datetime import timedelta

import pytest

from fakes import make_user
from src.school_management.school_management.core.enums import (
    BillingCycle,
    OnboardingStep,
    StepStatus,
    SubscriptionStatus,
)
from src.school_management.school_management.core.exceptions import NotFoundError, ValidationError


@pytest.fixture
def owner(world):
    return world.users.add(make_user(5, school_id=None, onboarded=False))


def _complete_all(world, user_id, now):
    for step in OnboardingStep:
        world.onboarding_service.update_step(user_id, step, data={"done": step.value}, now=now)


def test_initialize_creates_four_pending_steps(world, owner):
    steps = world.onboarding_service.initialize(owner.user_id)

    assert [s.step for s in steps] == list(OnboardingStep)
    assert all(s.status == StepStatus.PENDING for s in steps)
    assert world.onboarding_service.initialize(owner.user_id) == steps


def test_status_tracks_progress_and_current_step(world, owner, fixed_now):
    world.onboarding_service.update_step(owner.user_id, "school_setup", data={"school_id": 1}, now=fixed_now)
    world.onboarding_service.update_step(owner.user_id, "payment_plan", status="in_progress", now=fixed_now)

    status = world.onboarding_service.get_status(owner.user_id)

    assert status["current_step"] == "admin_profile"
    assert status["completed_steps"] == 1
    assert status["progress"] == 25
    assert status["steps"][0]["data"] == {"school_id": 1}
    assert status["steps"][2]["status"] == "in_progress"
    assert status["is_completed"] is False


def test_update_step_rejects_unknown_values(world, owner):
    with pytest.raises(ValidationError):
        world.onboarding_service.update_step(owner.user_id, "billing")
    with pytest.raises(ValidationError):
        world.onboarding_service.update_step(owner.user_id, "school_setup", status="skipped")
    with pytest.raises(ValidationError):
        world.onboarding_service.update_step(owner.user_id, "school_setup", data=["not", "a", "dict"])


def test_mark_complete_lists_pending_steps(world, owner, fixed_now):
    world.onboarding_service.update_step(owner.user_id, "school_setup", now=fixed_now)

    with pytest.raises(ValidationError) as exc:
        world.onboarding_service.mark_complete(owner.user_id, now=fixed_now)
    assert exc.value.errors == ["admin_profile", "payment_plan", "review_confirm"]

    _complete_all(world, owner.user_id, fixed_now)
    world.onboarding_service.mark_complete(owner.user_id, now=fixed_now)
    assert world.onboarding_service.is_completed(owner.user_id) is True
    assert world.onboarding_service.get_current_step(owner.user_id) == OnboardingStep.REVIEW_CONFIRM


def test_is_completed_for_unknown_user(world):
    with pytest.raises(NotFoundError):
        world.onboarding_service.is_completed(404)


def test_access_requires_onboarding(world, owner, fixed_now):
    world.trial_service.activate_trial(owner.user_id, now=fixed_now)

    decision = world.access_service.can_access_dashboard(owner.user_id, now=fixed_now)

    assert decision.allowed is False
    assert decision.reason == "onboarding_incomplete"


def test_access_through_trial(world, fixed_now):
    user = world.users.add(make_user(6))
    world.trial_service.activate_trial(user.user_id, now=fixed_now - timedelta(days=20, hours=12))

    decision = world.access_service.can_access_dashboard(user.user_id, now=fixed_now)

    assert decision.to_dict() == {
        "allowed": True,
        "reason": "access_granted",
        "access_type": "trial",
        "days_remaining": 10,
    }


def test_access_through_paid_subscription(world, fixed_now):
    user = world.users.add(make_user(6))
    world.subscription_service.select_plan(user.user_id, plan_id=2, billing_cycle="yearly", now=fixed_now)

    decision = world.access_service.can_access_dashboard(user.user_id, now=fixed_now + timedelta(days=5))

    assert decision.allowed is True
    assert decision.access_type == "subscription"
    assert decision.days_remaining == 360


def test_no_plan_means_no_access(world, fixed_now):
    user = world.users.add(make_user(6))
    world.subscriptions.create_subscription(
        user_id=user.user_id,
        school_id=1,
        plan_id=2,
        billing_cycle=BillingCycle.MONTHLY,
        status=SubscriptionStatus.ACTIVE,
        start_date=fixed_now - timedelta(days=40),
        end_date=fixed_now - timedelta(days=10),
        auto_renew=True,
    )

    decision = world.access_service.can_access_dashboard(user.user_id, now=fixed_now)

    assert (decision.allowed, decision.reason) == (False, "no_active_plan")
