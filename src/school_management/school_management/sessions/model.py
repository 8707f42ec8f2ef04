from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Session:
    session_id: int
    token: str
    user_id: int
    school_id: Optional[int]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_active: bool = True
    stay_logged_in: bool = False
    logged_out_at: Optional[datetime] = None


@dataclass(frozen=True)
class SessionUser:
    """The authenticated user attached to a request."""

    user_id: int
    school_id: Optional[int]
    username: str
    email: str
    full_name: str
    role: Role
    onboarding_completed: bool
    token: str
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "school_id": self.school_id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
            "onboarding_completed": self.onboarding_completed,
        }
