from __future__ import annotations

from flask import Flask, g, request

from ..core.constants import SESSION_COOKIE_NAME
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..common.validators import require_choice
from ..container import Container
from ..web.auth import Guards, current_token
from ..web.params import get_json
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)

    @app.route("/api/auth/register", methods=["POST"], endpoint="auth_register")
    @handle_api_errors
    def auth_register():
        payload = get_json()
        user_id = container.auth_service.register(
            username=payload.get("username", ""),
            email=payload.get("email", ""),
            full_name=payload.get("full_name", ""),
            password=payload.get("password", ""),
        )
        container.onboarding_service.initialize(user_id)
        return api_response({"user_id": user_id}, message="Account created", status=201)

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    @handle_api_errors
    def auth_login():
        payload = get_json()
        result = container.auth_service.authenticate(
            payload.get("identifier") or payload.get("username") or payload.get("email") or "",
            payload.get("password") or "",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
            stay_logged_in=bool(payload.get("stay_logged_in")),
        )
        response, status = api_response(
            {"user": result.user.to_dict(), "expires_at": result.expires_at},
            message="Login successful",
        )
        response.set_cookie(
            SESSION_COOKIE_NAME,
            result.token,
            expires=result.expires_at,
            httponly=True,
            secure=bool(app.config.get("SESSION_COOKIE_SECURE")),
            samesite="Lax",
        )
        return response, status

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    @handle_api_errors
    def auth_logout():
        token = current_token()
        user = container.auth_service.current_user(token) if token else None
        container.auth_service.logout(token, user_id=user.user_id if user else None)
        response, status = api_response(message="Logged out")
        response.delete_cookie(SESSION_COOKIE_NAME)
        return response, status

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @handle_api_errors
    @guards.login_required
    def auth_me():
        return api_response(g.user.to_dict())

    @app.route("/api/users", methods=["GET"], endpoint="list_users")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def list_users():
        users = container.user_service.list_users(g.user.school_id)
        return api_response(
            [
                {
                    "user_id": u.user_id,
                    "username": u.username,
                    "email": u.email,
                    "full_name": u.full_name,
                    "role": u.role.value,
                    "status": u.status.value,
                    "last_login": u.last_login,
                }
                for u in users
            ]
        )

    @app.route("/api/users", methods=["POST"], endpoint="create_user")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def create_user():
        payload = get_json()
        role = require_choice(payload.get("role") or Role.STAFF.value, Role, "Role")
        user_id = container.user_service.create_account(
            current_role=g.user.role,
            school_id=g.user.school_id,
            full_name=payload.get("full_name", ""),
            username=payload.get("username", ""),
            email=payload.get("email", ""),
            password=payload.get("password", ""),
            role=role,
            created_by=g.user.user_id,
        )
        return api_response({"user_id": user_id}, message="User created", status=201)

    @app.route("/api/users/<int:user_id>/status", methods=["PATCH"], endpoint="set_user_status")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def set_user_status(user_id: int):
        payload = get_json()
        if "is_active" not in payload:
            raise ValidationError("is_active is required")
        container.user_service.set_active(
            current_role=g.user.role,
            school_id=g.user.school_id,
            user_id=user_id,
            is_active=bool(payload["is_active"]),
        )
        return api_response(message="User status updated")

    @app.route("/api/users/<int:user_id>", methods=["DELETE"], endpoint="delete_user")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def delete_user(user_id: int):
        container.user_service.delete_user(
            current_role=g.user.role,
            current_user_id=g.user.user_id,
            school_id=g.user.school_id,
            user_id=user_id,
        )
        return api_response(message="User deleted")
