from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role, UserStatus


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Note: plain data object, no DB access here.
    """

    user_id: int
    school_id: Optional[int]
    username: str
    email: str
    full_name: str
    password_hash: str
    role: Role
    status: UserStatus = UserStatus.ACTIVE
    onboarding_completed: bool = False
    last_login: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
