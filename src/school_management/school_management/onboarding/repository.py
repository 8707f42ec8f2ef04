from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import OnboardingStep, StepStatus
from .model import StepRecord


class OnboardingRepository(Protocol):
    def ensure_steps(self, user_id: int, steps: Sequence[OnboardingStep]) -> int:
        """Insert missing steps as pending; returns how many were added."""

        raise NotImplementedError

    def list_steps(self, user_id: int) -> Sequence[StepRecord]:
        """Ordered by step order."""

        raise NotImplementedError

    def update_step(
        self,
        user_id: int,
        *,
        step: OnboardingStep,
        status: StepStatus,
        step_data: Optional[dict],
        at: datetime,
    ) -> bool:
        raise NotImplementedError
