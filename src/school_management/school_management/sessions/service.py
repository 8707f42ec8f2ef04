from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_SESSION_DAYS, DEFAULT_SESSION_INACTIVITY_DAYS
from ..users.model import User
from ..users.repository import UserRepository
from .model import Session, SessionUser
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Database-backed login sessions keyed by an opaque UUID token."""

    def __init__(
        self,
        sessions: SessionRepository,
        users: UserRepository,
        *,
        session_days: int = DEFAULT_SESSION_DAYS,
        inactivity_days: int = DEFAULT_SESSION_INACTIVITY_DAYS,
        token_factory: Optional[Callable[[], str]] = None,
    ):
        self._sessions = sessions
        self._users = users
        self._session_days = int(session_days)
        self._inactivity_days = int(inactivity_days)
        self._token_factory = token_factory or (lambda: str(uuid.uuid4()))

    def create_session(
        self,
        user: User,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        stay_logged_in: bool = False,
        now: Optional[datetime] = None,
    ) -> Session:
        now = now or now_local()
        token = self._token_factory()
        expires_at = now + timedelta(days=self._session_days)
        session_id = self._sessions.create_session(
            token=token,
            user_id=user.user_id,
            school_id=user.school_id,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            expires_at=expires_at,
            stay_logged_in=bool(stay_logged_in),
        )
        return Session(
            session_id=session_id,
            token=token,
            user_id=user.user_id,
            school_id=user.school_id,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            last_activity=now,
            expires_at=expires_at,
            stay_logged_in=bool(stay_logged_in),
        )

    def validate_session(self, token: Optional[str], *, now: Optional[datetime] = None) -> Optional[SessionUser]:
        """Return the session's user, or None when the token is not usable.

        Expired or idle sessions are invalidated on the way out.
        """
        if not token:
            return None
        now = now or now_local()

        session = self._sessions.get_by_token(token)
        if not session or not session.is_active:
            return None

        if now > session.expires_at:
            self._sessions.invalidate(token, at=now)
            return None

        idle = now - session.last_activity
        if not session.stay_logged_in and idle > timedelta(days=self._inactivity_days):
            logger.info("Session for user %s expired after %s of inactivity", session.user_id, idle)
            self._sessions.invalidate(token, at=now)
            return None

        user = self._users.get_by_id(session.user_id)
        if not user or not user.is_active:
            self._sessions.invalidate(token, at=now)
            return None

        self._sessions.touch(token, at=now)
        return SessionUser(
            user_id=user.user_id,
            school_id=user.school_id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            onboarding_completed=user.onboarding_completed,
            token=token,
            expires_at=session.expires_at,
        )

    def invalidate_session(self, token: str, *, now: Optional[datetime] = None) -> bool:
        return self._sessions.invalidate(token, at=now or now_local())

    def invalidate_user_sessions(self, user_id: int, *, now: Optional[datetime] = None) -> int:
        return self._sessions.invalidate_for_user(int(user_id), at=now or now_local())

    def purge_expired_sessions(self, *, now: Optional[datetime] = None) -> int:
        removed = self._sessions.delete_expired(before=now or now_local())
        logger.info("Purged %s expired sessions", removed)
        return removed
