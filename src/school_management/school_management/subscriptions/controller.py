from __future__ import annotations

from flask import Flask, g

from ..core.enums import BillingCycle
from ..container import Container
from ..web.auth import Guards
from ..web.params import body_int, get_json
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    subscriptions = container.subscription_service

    @app.route("/api/plans", methods=["GET"], endpoint="list_plans")
    @handle_api_errors
    def list_plans():
        return api_response(subscriptions.list_plans())

    @app.route("/api/plans/<plan_code>", methods=["GET"], endpoint="get_plan")
    @handle_api_errors
    def get_plan(plan_code: str):
        return api_response(subscriptions.get_plan_by_code(plan_code))

    @app.route("/api/subscription", methods=["GET"], endpoint="current_subscription")
    @handle_api_errors
    @guards.login_required
    def current_subscription():
        return api_response(subscriptions.get_user_plan(g.user.user_id))

    @app.route("/api/subscription", methods=["POST"], endpoint="select_plan")
    @handle_api_errors
    @guards.login_required
    def select_plan():
        payload = get_json()
        subscription = subscriptions.select_plan(
            g.user.user_id,
            plan_id=body_int(payload, "plan_id", "Plan"),
            billing_cycle=payload.get("billing_cycle") or BillingCycle.MONTHLY.value,
            school_id=g.user.school_id,
        )
        return api_response(subscription, message="Plan selected", status=201)

    @app.route("/api/subscription/change", methods=["POST"], endpoint="change_plan")
    @handle_api_errors
    @guards.login_required
    def change_plan():
        payload = get_json()
        subscription = subscriptions.change_plan(
            g.user.user_id,
            plan_id=body_int(payload, "plan_id", "Plan"),
            billing_cycle=payload.get("billing_cycle") or BillingCycle.MONTHLY.value,
        )
        return api_response(subscription, message="Plan changed")

    @app.route("/api/subscription/cancel", methods=["POST"], endpoint="cancel_subscription")
    @handle_api_errors
    @guards.login_required
    def cancel_subscription():
        return api_response(subscriptions.cancel_subscription(g.user.user_id), message="Subscription cancelled")

    @app.route("/api/subscription/<int:subscription_id>/payment", methods=["POST"], endpoint="confirm_subscription_payment")
    @handle_api_errors
    @guards.login_required
    def confirm_subscription_payment(subscription_id: int):
        payload = get_json()
        subscription = subscriptions.confirm_payment(
            subscription_id,
            user_id=g.user.user_id,
            payment_method=payload.get("payment_method"),
            transaction_ref=payload.get("transaction_ref"),
        )
        return api_response(subscription, message="Payment confirmed")
