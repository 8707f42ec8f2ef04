from __future__ import annotations

from flask import Flask, g

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import body_int, get_json, query_bool, query_int, query_str
from ..web.responses import api_response, handle_api_errors

_FINANCE_ROLES = (Role.ADMIN, Role.BURSAR)


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    fees = container.fee_service

    # Fee items
    @app.route("/api/fees/items", methods=["GET"], endpoint="list_fee_items")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_fee_items():
        items = fees.list_fee_items(
            school_id=g.user.school_id,
            term=query_int("term"),
            year=query_int("year"),
            applies_to=query_str("applies_to"),
            is_active=None if query_str("is_active") is None else query_bool("is_active"),
        )
        return api_response(items)

    @app.route("/api/fees/items", methods=["POST"], endpoint="create_fee_item")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def create_fee_item():
        payload = get_json()
        item = fees.create_fee_item(
            school_id=g.user.school_id,
            item_name=payload.get("item_name", ""),
            amount=payload.get("amount"),
            description=payload.get("description"),
            applies_to=payload.get("applies_to") or "all",
            class_id=payload.get("class_id"),
            term=payload.get("term"),
            year=payload.get("year"),
            is_mandatory=bool(payload.get("is_mandatory", True)),
            created_by=g.user.user_id,
        )
        return api_response(item, message="Fee item created", status=201)

    @app.route("/api/fees/items/<int:fee_item_id>", methods=["GET"], endpoint="get_fee_item")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_fee_item(fee_item_id: int):
        return api_response(fees.get_fee_item(school_id=g.user.school_id, fee_item_id=fee_item_id))

    @app.route("/api/fees/items/<int:fee_item_id>", methods=["PUT", "PATCH"], endpoint="update_fee_item")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def update_fee_item(fee_item_id: int):
        item = fees.update_fee_item(school_id=g.user.school_id, fee_item_id=fee_item_id, data=get_json())
        return api_response(item, message="Fee item updated")

    @app.route("/api/fees/items/<int:fee_item_id>", methods=["DELETE"], endpoint="delete_fee_item")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def delete_fee_item(fee_item_id: int):
        fees.delete_fee_item(school_id=g.user.school_id, fee_item_id=fee_item_id)
        return api_response(message="Fee item deleted")

    # Allocation
    @app.route("/api/fees/allocate", methods=["POST"], endpoint="allocate_fees")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def allocate_fees():
        payload = get_json()
        result = fees.allocate_fees_to_student(
            school_id=g.user.school_id,
            student_id=body_int(payload, "student_id", "Student"),
            fee_item_ids=payload.get("fee_item_ids") or [],
            term=payload.get("term"),
            year=payload.get("year"),
            custom_amounts=payload.get("custom_amounts"),
            allocated_by=g.user.user_id,
        )
        return api_response(result, message="Fees allocated")

    @app.route("/api/fees/bulk-allocate", methods=["POST"], endpoint="bulk_allocate_fees")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def bulk_allocate_fees():
        payload = get_json()
        result = fees.bulk_allocate_fees(
            school_id=g.user.school_id,
            target_type=payload.get("target_type") or "all",
            fee_item_ids=payload.get("fee_item_ids") or [],
            term=payload.get("term"),
            year=payload.get("year"),
            class_id=payload.get("class_id"),
            stream_id=payload.get("stream_id"),
            allocated_by=g.user.user_id,
        )
        return api_response(
            result,
            message=f"Fees allocated to {result.students_affected} students",
        )

    @app.route("/api/fees/unallocated", methods=["GET"], endpoint="unallocated_students")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def unallocated_students():
        return api_response(
            fees.list_unallocated_students(school_id=g.user.school_id, term=query_int("term"), year=query_int("year"))
        )

    @app.route("/api/fees/allocated", methods=["GET"], endpoint="allocated_fees")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def allocated_fees():
        return api_response(
            fees.list_allocated_fees(
                school_id=g.user.school_id,
                term=query_int("term"),
                year=query_int("year"),
                student_id=query_int("student_id"),
                class_id=query_int("class_id"),
            )
        )

    @app.route("/api/students/<int:student_id>/account", methods=["GET"], endpoint="student_account")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def student_account(student_id: int):
        account = fees.get_student_account(
            school_id=g.user.school_id, student_id=student_id, term=query_int("term"), year=query_int("year")
        )
        return api_response(account)

    @app.route("/api/students/<int:student_id>/account/history", methods=["GET"], endpoint="student_account_history")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def student_account_history(student_id: int):
        return api_response(container.account_service.history(school_id=g.user.school_id, student_id=student_id))

    # Payment methods
    @app.route("/api/payment-methods", methods=["GET"], endpoint="list_payment_methods")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_payment_methods():
        return api_response(
            fees.list_payment_methods(school_id=g.user.school_id, active_only=query_bool("active_only", True))
        )

    @app.route("/api/payment-methods", methods=["POST"], endpoint="create_payment_method")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_FINANCE_ROLES)
    def create_payment_method():
        payload = get_json()
        method = fees.create_payment_method(
            school_id=g.user.school_id, name=payload.get("name", ""), description=payload.get("description")
        )
        return api_response(method, message="Payment method created", status=201)
