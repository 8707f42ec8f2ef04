from __future__ import annotations

from flask import Flask, g

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import get_json, query_int, query_str
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    bursaries = container.bursary_service

    @app.route("/api/bursaries", methods=["POST"], endpoint="apply_bursary")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN, Role.BURSAR)
    def apply_bursary():
        payload = get_json()
        # only admins may approve in the same request
        auto_approve = bool(payload.get("auto_approve")) and g.user.role in (Role.ADMIN, Role.SUPER_ADMIN)
        bursary = bursaries.apply_bursary(
            school_id=g.user.school_id,
            payload=payload,
            applied_by=g.user.user_id,
            auto_approve=auto_approve,
        )
        return api_response(bursary, message="Bursary application recorded", status=201)

    @app.route("/api/bursaries", methods=["GET"], endpoint="list_bursaries")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_bursaries():
        page = bursaries.list_bursaries(
            school_id=g.user.school_id,
            page=query_int("page", 1),
            limit=query_int("limit"),
            student_id=query_int("student_id"),
            status=query_str("status"),
            term=query_int("term"),
            year=query_int("year"),
        )
        return api_response(page.to_dict(lambda b: b.to_dict()))

    @app.route("/api/bursaries/stats", methods=["GET"], endpoint="bursary_stats")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def bursary_stats():
        return api_response(
            bursaries.bursary_stats(school_id=g.user.school_id, term=query_int("term"), year=query_int("year"))
        )

    @app.route("/api/bursaries/<int:bursary_id>", methods=["GET"], endpoint="get_bursary")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_bursary(bursary_id: int):
        return api_response(bursaries.get_bursary(school_id=g.user.school_id, bursary_id=bursary_id))

    @app.route("/api/bursaries/<int:bursary_id>/approve", methods=["POST"], endpoint="approve_bursary")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def approve_bursary(bursary_id: int):
        result = bursaries.approve_bursary(
            school_id=g.user.school_id, bursary_id=bursary_id, approved_by=g.user.user_id
        )
        return api_response(result, message="Bursary approved")

    @app.route("/api/bursaries/<int:bursary_id>/reject", methods=["POST"], endpoint="reject_bursary")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def reject_bursary(bursary_id: int):
        bursary = bursaries.reject_bursary(
            school_id=g.user.school_id,
            bursary_id=bursary_id,
            reason=get_json().get("reason", ""),
            rejected_by=g.user.user_id,
        )
        return api_response(bursary, message="Bursary rejected")
