from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..audit.service import AuditService
from ..common.datetime_utils import now_local
from ..common.validators import require_email, require_min_length, require_non_empty
from ..core.constants import MIN_PASSWORD_LENGTH
from ..core.enums import Role, UserStatus
from ..core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..sessions.model import SessionUser
from ..sessions.service import SessionService
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)

_BAD_CREDENTIALS = "Invalid username/email or password"
_ADMIN_ROLES = {Role.SUPER_ADMIN, Role.ADMIN}


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: datetime
    user: SessionUser


class AuthService:
    """Use cases: register, login, logout."""

    def __init__(self, users: UserRepository, sessions: SessionService, audit: AuditService):
        self._users = users
        self._sessions = sessions
        self._audit = audit

    def register(self, *, username: str, email: str, full_name: str, password: str) -> int:
        """Create a school owner account; the school itself is set up during onboarding."""
        username = require_non_empty(username, "Username")
        email = require_email(email)
        full_name = require_non_empty(full_name, "Full name")
        require_min_length(password, "Password", MIN_PASSWORD_LENGTH)

        if self._users.username_exists(username):
            raise ConflictError("Username is already taken")
        if self._users.email_exists(email):
            raise ConflictError("Email is already registered")

        user_id = self._users.create_user(
            school_id=None,
            username=username,
            email=email,
            full_name=full_name,
            password_hash=generate_password_hash(password),
            role=Role.ADMIN,
        )
        self._audit.log("user_registered", user_id=user_id, entity_type="user", entity_id=user_id)
        return user_id

    def authenticate(
        self,
        identifier: str,
        password: str,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        stay_logged_in: bool = False,
        now: Optional[datetime] = None,
    ) -> LoginResult:
        now = now or now_local()
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise AuthenticationError(_BAD_CREDENTIALS)

        user = self._users.get_by_login(identifier)
        if not user or not user.is_active:
            raise AuthenticationError(_BAD_CREDENTIALS)

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # e.g. placeholder or corrupted hashes
            ok = False

        if not ok:
            logger.info("Failed login for %s from %s", identifier, ip_address)
            raise AuthenticationError(_BAD_CREDENTIALS)

        session = self._sessions.create_session(
            user,
            ip_address=ip_address,
            user_agent=user_agent,
            stay_logged_in=stay_logged_in,
            now=now,
        )
        self._users.update_last_login(user.user_id, at=now)
        self._audit.log(
            "login",
            user_id=user.user_id,
            school_id=user.school_id,
            entity_type="session",
            entity_id=session.session_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return LoginResult(
            token=session.token,
            expires_at=session.expires_at,
            user=SessionUser(
                user_id=user.user_id,
                school_id=user.school_id,
                username=user.username,
                email=user.email,
                full_name=user.full_name,
                role=user.role,
                onboarding_completed=user.onboarding_completed,
                token=session.token,
                expires_at=session.expires_at,
            ),
        )

    def logout(self, token: str, *, user_id: Optional[int] = None, now: Optional[datetime] = None) -> None:
        if not token:
            return
        if self._sessions.invalidate_session(token, now=now):
            self._audit.log("logout", user_id=user_id, entity_type="session")

    def current_user(self, token: Optional[str], *, now: Optional[datetime] = None) -> Optional[SessionUser]:
        return self._sessions.validate_session(token, now=now)


class UserService:
    """Use cases: manage staff accounts of a school (admin)."""

    def __init__(self, users: UserRepository, sessions: SessionService, audit: AuditService):
        self._users = users
        self._sessions = sessions
        self._audit = audit

    def create_account(
        self,
        *,
        current_role: Role,
        school_id: int,
        full_name: str,
        username: str,
        email: str,
        password: str,
        role: Role,
        created_by: Optional[int] = None,
    ) -> int:
        if current_role not in _ADMIN_ROLES:
            raise AuthorizationError("You do not have permission to manage users")
        if role == Role.SUPER_ADMIN:
            raise ValidationError("Super admin accounts cannot be created here")

        full_name = require_non_empty(full_name, "Full name")
        username = require_non_empty(username, "Username")
        email = require_email(email)
        require_min_length(password, "Password", MIN_PASSWORD_LENGTH)

        if self._users.username_exists(username):
            raise ConflictError("Username is already taken")
        if self._users.email_exists(email):
            raise ConflictError("Email is already registered")

        user_id = self._users.create_user(
            school_id=int(school_id),
            username=username,
            email=email,
            full_name=full_name,
            password_hash=generate_password_hash(password),
            role=role,
        )
        self._audit.log(
            "user_created",
            user_id=created_by,
            school_id=int(school_id),
            entity_type="user",
            entity_id=user_id,
            new_values={"username": username, "role": role.value},
        )
        return user_id

    def list_users(self, school_id: int) -> list[User]:
        return list(self._users.list_for_school(int(school_id)))

    def _get_in_school(self, school_id: int, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user or user.school_id != int(school_id):
            raise NotFoundError("User not found")
        return user

    def set_active(self, *, current_role: Role, school_id: int, user_id: int, is_active: bool) -> None:
        if current_role not in _ADMIN_ROLES:
            raise AuthorizationError("You do not have permission to manage users")

        self._get_in_school(school_id, user_id)
        status = UserStatus.ACTIVE if is_active else UserStatus.INACTIVE
        if not self._users.set_status(int(user_id), status=status):
            raise ValidationError("Could not update user status")
        if not is_active:
            self._sessions.invalidate_user_sessions(int(user_id))

    def delete_user(self, *, current_role: Role, current_user_id: int, school_id: int, user_id: int) -> None:
        if current_role not in _ADMIN_ROLES:
            raise AuthorizationError("You do not have permission to manage users")
        if int(user_id) == int(current_user_id):
            raise ValidationError("You cannot delete your own account")

        user = self._get_in_school(school_id, user_id)
        if user.role in _ADMIN_ROLES:
            raise ValidationError("Admin accounts cannot be deleted")

        if not self._users.delete_by_id(int(user_id)):
            raise ValidationError("Could not delete user")
        self._audit.log(
            "user_deleted",
            user_id=int(current_user_id),
            school_id=int(school_id),
            entity_type="user",
            entity_id=int(user_id),
            old_values={"username": user.username, "role": user.role.value},
        )
