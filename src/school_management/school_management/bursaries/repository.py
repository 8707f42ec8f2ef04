from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import BursaryStatus, BursaryType
from .model import Bursary, BursaryAdjustment


class BursaryRepository(Protocol):
    def create_bursary(
        self,
        *,
        school_id: int,
        student_id: int,
        bursary_type: BursaryType,
        value: Decimal,
        reason: Optional[str],
        term: int,
        year: int,
        sponsor_name: Optional[str],
        sponsor_contact: Optional[str],
        valid_until: Optional[date],
        applied_by: Optional[int],
        applied_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, *, school_id: int, bursary_id: int) -> Optional[Bursary]:
        raise NotImplementedError

    def set_decision(
        self,
        *,
        school_id: int,
        bursary_id: int,
        status: BursaryStatus,
        decided_by: Optional[int],
        decided_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        """Only moves a pending bursary; False when it was already decided."""

        raise NotImplementedError

    def add_adjustment(self, adjustment: BursaryAdjustment) -> int:
        raise NotImplementedError

    def list_adjustments(self, *, bursary_id: int) -> Sequence[BursaryAdjustment]:
        raise NotImplementedError

    def search(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        status: Optional[BursaryStatus] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Bursary]:
        raise NotImplementedError

    def count(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        status: Optional[BursaryStatus] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
    ) -> int:
        raise NotImplementedError

    def stats(self, *, school_id: int, term: Optional[int] = None, year: Optional[int] = None) -> dict:
        """total, pending, approved, rejected, full_sponsorships, total_waived."""

        raise NotImplementedError
