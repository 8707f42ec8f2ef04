from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import TrialStatus


@dataclass(frozen=True)
class UserTrial:
    trial_id: int
    user_id: int
    start_date: datetime
    end_date: datetime
    status: TrialStatus = TrialStatus.ACTIVE
    created_at: Optional[datetime] = None

    def is_running(self, now: datetime) -> bool:
        return self.status == TrialStatus.ACTIVE and self.end_date > now
