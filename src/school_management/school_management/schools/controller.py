from __future__ import annotations

from flask import Flask, g

from ..core.enums import OnboardingStep, Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import get_json, query_int
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)

    @app.route("/api/schools", methods=["POST"], endpoint="create_school")
    @handle_api_errors
    @guards.login_required
    @guards.roles_required(Role.ADMIN)
    def create_school():
        school = container.school_service.create_school(user_id=g.user.user_id, data=get_json())
        container.onboarding_service.update_step(
            g.user.user_id,
            OnboardingStep.SCHOOL_SETUP,
            data={"school_id": school.school_id, "school_code": school.school_code},
        )
        return api_response(school.to_dict(), message="School created", status=201)

    @app.route("/api/schools/current", methods=["GET"], endpoint="current_school")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def current_school():
        return api_response(container.school_service.get_school(g.user.school_id).to_dict())

    @app.route("/api/schools/current", methods=["PUT", "PATCH"], endpoint="update_school")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def update_school():
        school = container.school_service.update_school(g.user.school_id, get_json(), updated_by=g.user.user_id)
        return api_response(school.to_dict(), message="School updated")

    @app.route("/api/schools/current/audit-logs", methods=["GET"], endpoint="school_audit_logs")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def school_audit_logs():
        limit = min(max(query_int("limit", 100), 1), 500)
        return api_response(container.audit_service.recent(g.user.school_id, limit=limit))
