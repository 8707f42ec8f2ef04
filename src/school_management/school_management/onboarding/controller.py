from __future__ import annotations

from flask import Flask, g

from ..core.constants import TRIAL_PLAN_CODE
from ..core.enums import BillingCycle, OnboardingStep
from ..container import Container
from ..web.auth import Guards
from ..web.params import body_int, get_json
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    onboarding = container.onboarding_service

    @app.route("/api/onboarding/status", methods=["GET"], endpoint="onboarding_status")
    @handle_api_errors
    @guards.login_required
    def onboarding_status():
        return api_response(onboarding.get_status(g.user.user_id))

    @app.route("/api/onboarding/steps/<step>", methods=["PUT", "POST"], endpoint="onboarding_step")
    @handle_api_errors
    @guards.login_required
    def onboarding_step(step: str):
        payload = get_json()
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload

        if step == OnboardingStep.PAYMENT_PLAN.value and (payload.get("plan_id") or payload.get("plan_code")):
            _start_plan(payload)

        record = onboarding.update_step(
            g.user.user_id,
            step,
            data=data,
            status=payload.get("status") or "completed",
        )
        return api_response(record, message="Onboarding step saved")

    def _start_plan(payload: dict) -> None:
        user_id = g.user.user_id
        # resubmitting the step keeps the plan already running; plan changes go through /api/subscription/change
        if container.trial_service.get_active_trial(user_id) or container.subscription_service.has_active_subscription(
            user_id
        ):
            return
        plan_code = (payload.get("plan_code") or "").strip().lower()
        if plan_code == TRIAL_PLAN_CODE:
            container.trial_service.activate_trial(g.user.user_id, school_id=g.user.school_id)
            return
        plan = (
            container.subscription_service.get_plan_by_code(plan_code)
            if plan_code
            else container.subscription_service.get_plan(body_int(payload, "plan_id", "Plan"))
        )
        if plan.is_trial:
            container.trial_service.activate_trial(g.user.user_id, school_id=g.user.school_id)
            return
        container.subscription_service.select_plan(
            g.user.user_id,
            plan_id=plan.plan_id,
            billing_cycle=payload.get("billing_cycle") or BillingCycle.MONTHLY.value,
            school_id=g.user.school_id,
        )

    @app.route("/api/onboarding/complete", methods=["POST"], endpoint="onboarding_complete")
    @handle_api_errors
    @guards.login_required
    def onboarding_complete():
        onboarding.mark_complete(g.user.user_id)
        return api_response(onboarding.get_status(g.user.user_id), message="Onboarding completed")

    @app.route("/api/access/dashboard", methods=["GET"], endpoint="dashboard_access")
    @handle_api_errors
    @guards.login_required
    def dashboard_access():
        decision = container.access_service.can_access_dashboard(g.user.user_id)
        return api_response(decision, message=decision.reason)
