from __future__ import annotations

from flask import Flask, g

from ..core.enums import BillingCycle, Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import body_int, get_json
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    trials = container.trial_service

    @app.route("/api/trial/activate", methods=["POST"], endpoint="activate_trial")
    @handle_api_errors
    @guards.login_required
    def activate_trial():
        trial = trials.activate_trial(g.user.user_id, school_id=g.user.school_id)
        return api_response(trial, message="Trial activated", status=201)

    @app.route("/api/trial/status", methods=["GET"], endpoint="trial_status")
    @handle_api_errors
    @guards.login_required
    def trial_status():
        status = trials.get_trial_status(g.user.user_id)
        status["has_access"] = trials.has_active_access(g.user.user_id)
        return api_response(status)

    @app.route("/api/trial/convert", methods=["POST"], endpoint="convert_trial")
    @handle_api_errors
    @guards.login_required
    def convert_trial():
        payload = get_json()
        subscription_id = trials.convert_trial_to_paid(
            g.user.user_id,
            plan_id=body_int(payload, "plan_id", "Plan"),
            billing_cycle=payload.get("billing_cycle") or BillingCycle.MONTHLY.value,
            school_id=g.user.school_id,
        )
        return api_response({"subscription_id": subscription_id}, message="Trial converted to a paid plan")

    @app.route("/api/trial/users/<int:user_id>/extend", methods=["POST"], endpoint="extend_trial")
    @handle_api_errors
    @guards.login_required
    @guards.roles_required(Role.SUPER_ADMIN)
    def extend_trial(user_id: int):
        trial = trials.extend_trial(user_id, days=get_json().get("days", 7))
        return api_response(trial, message="Trial extended")

    @app.route("/api/trial/expire", methods=["POST"], endpoint="expire_trials")
    @handle_api_errors
    @guards.login_required
    @guards.roles_required(Role.SUPER_ADMIN)
    def expire_trials():
        return api_response(trials.update_expired_trials(), message="Expired trials updated")
