from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from .model import Session


class SessionRepository(Protocol):
    def create_session(
        self,
        *,
        token: str,
        user_id: int,
        school_id: Optional[int],
        ip_address: Optional[str],
        user_agent: Optional[str],
        created_at: datetime,
        expires_at: datetime,
        stay_logged_in: bool,
    ) -> int:
        raise NotImplementedError

    def get_by_token(self, token: str) -> Optional[Session]:
        raise NotImplementedError

    def touch(self, token: str, *, at: datetime) -> bool:
        raise NotImplementedError

    def invalidate(self, token: str, *, at: datetime) -> bool:
        raise NotImplementedError

    def invalidate_for_user(self, user_id: int, *, at: datetime) -> int:
        raise NotImplementedError

    def delete_expired(self, *, before: datetime) -> int:
        raise NotImplementedError
