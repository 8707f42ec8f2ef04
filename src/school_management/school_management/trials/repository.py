from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..core.enums import TrialStatus
from .model import UserTrial


class TrialRepository(Protocol):
    def get_active(self, user_id: int) -> Optional[UserTrial]:
        """Latest trial with status active, even if its end date has passed."""

        raise NotImplementedError

    def get_latest(self, user_id: int) -> Optional[UserTrial]:
        raise NotImplementedError

    def create_trial(self, *, user_id: int, start_date: datetime, end_date: datetime) -> int:
        raise NotImplementedError

    def set_status(self, trial_id: int, *, status: TrialStatus) -> bool:
        raise NotImplementedError

    def set_end_date(self, trial_id: int, *, end_date: datetime) -> bool:
        raise NotImplementedError

    def expire_due(self, *, now: datetime) -> int:
        raise NotImplementedError
