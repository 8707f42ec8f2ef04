from __future__ import annotations

from functools import wraps

from flask import g, request

from ..core.constants import SESSION_COOKIE_NAME
from ..core.enums import Role
from .responses import error_response


def current_token() -> str | None:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


class Guards:
    """Route decorators backed by the sessions table.

    `login_required` stores the SessionUser on `g.user`; the other guards
    must be stacked below it. Tenant-scoped views read the school from
    `g.user`, never from the request.
    """

    def __init__(self, container):
        self._container = container

    def login_required(self, view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = self._container.auth_service.current_user(current_token())
            if not user:
                return error_response("Authentication required", 401)
            g.user = user
            return view(*args, **kwargs)

        return wrapper

    def roles_required(self, *roles: Role):
        allowed = {Role.SUPER_ADMIN, *roles}

        def decorator(view):
            @wraps(view)
            def wrapper(*args, **kwargs):
                user = getattr(g, "user", None)
                if user is None:
                    return error_response("Authentication required", 401)
                if user.role not in allowed:
                    return error_response("You do not have permission to perform this action", 403)
                return view(*args, **kwargs)

            return wrapper

        return decorator

    def school_required(self, view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return error_response("Authentication required", 401)
            if not user.school_id:
                return error_response("Set up your school first", 403)
            return view(*args, **kwargs)

        return wrapper
