from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..common.validators import require_choice
from ..core.enums import OnboardingStep, StepStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..users.repository import UserRepository
from .model import StepRecord
from .repository import OnboardingRepository

logger = logging.getLogger(__name__)


class OnboardingService:
    """Use cases: the four-step setup a new school owner goes through."""

    def __init__(
        self,
        onboarding: OnboardingRepository,
        users: UserRepository,
        *,
        transaction: Optional[Callable] = None,
    ):
        self._onboarding = onboarding
        self._users = users
        self._transaction = transaction or nullcontext

    def initialize(self, user_id: int) -> list[StepRecord]:
        added = self._onboarding.ensure_steps(int(user_id), list(OnboardingStep))
        if added:
            logger.info("Onboarding initialized for user %s (%s steps)", user_id, added)
        return self._steps(user_id)

    def _steps(self, user_id: int) -> list[StepRecord]:
        by_step = {r.step: r for r in self._onboarding.list_steps(int(user_id))}
        return [by_step.get(step) or StepRecord(user_id=int(user_id), step=step) for step in OnboardingStep]

    def get_current_step(self, user_id: int) -> OnboardingStep:
        """First step not completed yet; the last one once all are done."""
        for record in self._steps(user_id):
            if not record.is_completed:
                return record.step
        return list(OnboardingStep)[-1]

    def get_status(self, user_id: int) -> dict:
        steps = self._steps(user_id)
        done = sum(1 for s in steps if s.is_completed)
        return {
            "steps": [s.to_dict() for s in steps],
            "current_step": self.get_current_step(user_id).value,
            "completed_steps": done,
            "total_steps": len(steps),
            "progress": round(done * 100 / len(steps)),
            "is_completed": self.is_completed(user_id),
        }

    def update_step(
        self,
        user_id: int,
        step: str | OnboardingStep,
        *,
        data: Optional[dict] = None,
        status: str | StepStatus = StepStatus.COMPLETED,
        now: Optional[datetime] = None,
    ) -> StepRecord:
        step = require_choice(step.value if isinstance(step, OnboardingStep) else step, OnboardingStep, "Step")
        status = require_choice(status.value if isinstance(status, StepStatus) else status, StepStatus, "Step status")
        if data is not None and not isinstance(data, dict):
            raise ValidationError("Step data must be an object")
        now = now or now_local()

        self._onboarding.ensure_steps(int(user_id), list(OnboardingStep))
        self._onboarding.update_step(int(user_id), step=step, status=status, step_data=data, at=now)
        record = next(r for r in self._steps(user_id) if r.step == step)
        if data is not None and not record.step_data:
            record = replace(record, step_data=data)
        return record

    def is_completed(self, user_id: int) -> bool:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        return bool(user.onboarding_completed)

    def mark_complete(self, user_id: int, *, now: Optional[datetime] = None) -> None:
        now = now or now_local()
        with self._transaction():
            pending = [r.step.value for r in self._steps(user_id) if not r.is_completed]
            if pending:
                raise ValidationError("All onboarding steps must be completed first", errors=pending)
            self._users.mark_onboarding_completed(int(user_id), at=now)
        logger.info("Onboarding completed for user %s", user_id)
