from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.enums import OnboardingStep, StepStatus


@dataclass(frozen=True)
class StepRecord:
    user_id: int
    step: OnboardingStep
    status: StepStatus = StepStatus.PENDING
    step_data: dict = field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "order": self.step.order,
            "status": self.status.value,
            "data": self.step_data,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
