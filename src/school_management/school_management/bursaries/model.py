from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import BursaryStatus, BursaryType


@dataclass(frozen=True)
class Bursary:
    bursary_id: int
    school_id: int
    student_id: int
    bursary_type: BursaryType
    value: Decimal
    term: int
    year: int
    status: BursaryStatus = BursaryStatus.PENDING
    reason: Optional[str] = None
    sponsor_name: Optional[str] = None
    sponsor_contact: Optional[str] = None
    valid_until: Optional[date] = None
    applied_by: Optional[int] = None
    applied_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    student_name: Optional[str] = None
    admission_no: Optional[str] = None

    def to_dict(self) -> dict:
        def iso(v):
            return v.isoformat() if v else None

        return {
            "bursary_id": self.bursary_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "admission_no": self.admission_no,
            "bursary_type": self.bursary_type.value,
            "value": str(self.value),
            "term": self.term,
            "year": self.year,
            "status": self.status.value,
            "reason": self.reason,
            "sponsor_name": self.sponsor_name,
            "sponsor_contact": self.sponsor_contact,
            "valid_until": iso(self.valid_until),
            "applied_at": iso(self.applied_at),
            "approved_at": iso(self.approved_at),
            "rejected_at": iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
        }


@dataclass(frozen=True)
class BursaryAdjustment:
    """Audit row: what one bursary took off one fee allocation."""

    bursary_id: int
    student_fee_id: int
    original_amount: Decimal
    adjustment_amount: Decimal
    adjusted_amount: Decimal
