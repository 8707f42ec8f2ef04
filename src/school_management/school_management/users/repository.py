from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import Role, UserStatus
from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note: services depend on this interface, not on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_login(self, identifier: str) -> Optional[User]:
        """Match username or email, case-insensitive."""

        raise NotImplementedError

    def username_exists(self, username: str) -> bool:
        raise NotImplementedError

    def email_exists(self, email: str) -> bool:
        raise NotImplementedError

    def create_user(
        self,
        *,
        school_id: Optional[int],
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        role: Role,
    ) -> int:
        raise NotImplementedError

    def delete_by_id(self, user_id: int) -> bool:
        raise NotImplementedError

    def set_status(self, user_id: int, *, status: UserStatus) -> bool:
        raise NotImplementedError

    def set_school(self, user_id: int, *, school_id: int) -> bool:
        raise NotImplementedError

    def update_last_login(self, user_id: int, *, at: datetime) -> None:
        raise NotImplementedError

    def mark_onboarding_completed(self, user_id: int, *, at: datetime) -> bool:
        raise NotImplementedError

    def list_for_school(self, school_id: int) -> Sequence[User]:
        raise NotImplementedError
