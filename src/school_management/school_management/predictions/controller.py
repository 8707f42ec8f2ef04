from __future__ import annotations

from flask import Flask, g

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import query_int
from ..web.responses import api_response, handle_api_errors

_ANALYTICS_ROLES = (Role.ADMIN, Role.BURSAR)


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    predictions = container.prediction_service

    @app.route("/api/predictions/students/<int:student_id>/completion", methods=["GET"], endpoint="predict_completion")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def predict_completion(student_id: int):
        return api_response(
            predictions.predict_fee_completion(
                school_id=g.user.school_id, student_id=student_id, term=query_int("term"), year=query_int("year")
            )
        )

    @app.route("/api/predictions/students/<int:student_id>/probability", methods=["GET"], endpoint="payment_probability")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def payment_probability(student_id: int):
        return api_response(
            predictions.payment_probability(
                school_id=g.user.school_id, student_id=student_id, term=query_int("term"), year=query_int("year")
            )
        )

    @app.route("/api/predictions/cash-flow", methods=["GET"], endpoint="cash_flow_forecast")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def cash_flow_forecast():
        return api_response(predictions.forecast_cash_flow(school_id=g.user.school_id, months=query_int("months", 3)))

    @app.route("/api/predictions/class-trends", methods=["GET"], endpoint="class_trends")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def class_trends():
        return api_response(
            predictions.analyze_class_trends(school_id=g.user.school_id, term=query_int("term"), year=query_int("year"))
        )

    @app.route("/api/predictions/unusual-payments", methods=["GET"], endpoint="unusual_payments")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def unusual_payments():
        return api_response(predictions.detect_unusual_payments(school_id=g.user.school_id, days=query_int("days", 7)))

    @app.route("/api/predictions/dashboard", methods=["GET"], endpoint="prediction_dashboard")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_ANALYTICS_ROLES)
    def prediction_dashboard():
        return api_response(
            predictions.dashboard(school_id=g.user.school_id, term=query_int("term"), year=query_int("year"))
        )
