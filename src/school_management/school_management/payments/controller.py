from __future__ import annotations

from flask import Flask, g

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import get_json, query_int, query_str
from ..web.responses import api_response, handle_api_errors

_FINANCE_ROLES = (Role.ADMIN, Role.BURSAR)


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    payments = container.payment_service

    @app.route("/api/payments", methods=["POST"], endpoint="record_payment")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def record_payment():
        result = payments.record_payment(school_id=g.user.school_id, payload=get_json(), recorded_by=g.user.user_id)
        return api_response(result, message="Payment recorded", status=201)

    @app.route("/api/payments", methods=["GET"], endpoint="list_payments")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_payments():
        page = payments.list_transactions(
            school_id=g.user.school_id,
            page=query_int("page", 1),
            limit=query_int("limit"),
            student_id=query_int("student_id"),
            term=query_int("term"),
            year=query_int("year"),
            payment_method_id=query_int("payment_method_id"),
            date_from=query_str("date_from"),
            date_to=query_str("date_to"),
        )
        return api_response(page.to_dict(lambda t: t.to_dict()))

    @app.route("/api/payments/method-stats", methods=["GET"], endpoint="payment_method_stats")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def payment_method_stats():
        return api_response(
            payments.payment_method_stats(
                school_id=g.user.school_id, date_from=query_str("date_from"), date_to=query_str("date_to")
            )
        )

    @app.route("/api/payments/<int:transaction_id>", methods=["GET"], endpoint="get_payment")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_payment(transaction_id: int):
        return api_response(payments.get_transaction(school_id=g.user.school_id, transaction_id=transaction_id))

    @app.route("/api/payments/<int:transaction_id>/reverse", methods=["POST"], endpoint="reverse_payment")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def reverse_payment(transaction_id: int):
        txn = payments.reverse_transaction(
            school_id=g.user.school_id,
            transaction_id=transaction_id,
            reason=get_json().get("reason", ""),
            reversed_by=g.user.user_id,
        )
        return api_response(txn, message="Transaction reversed")

    @app.route("/api/students/<int:student_id>/payments/summary", methods=["GET"], endpoint="student_payment_summary")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def student_payment_summary(student_id: int):
        return api_response(
            payments.student_transaction_summary(school_id=g.user.school_id, student_id=student_id)
        )
