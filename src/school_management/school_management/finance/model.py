from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import FeeAppliesTo, FeeStatus


@dataclass(frozen=True)
class FeeItem:
    fee_item_id: int
    school_id: int
    item_name: str
    amount: Decimal
    applies_to: FeeAppliesTo = FeeAppliesTo.ALL
    description: Optional[str] = None
    class_id: Optional[int] = None
    term: Optional[int] = None
    year: Optional[int] = None
    is_mandatory: bool = True
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "fee_item_id": self.fee_item_id,
            "item_name": self.item_name,
            "description": self.description,
            "amount": str(self.amount),
            "applies_to": self.applies_to.value,
            "class_id": self.class_id,
            "term": self.term,
            "year": self.year,
            "is_mandatory": self.is_mandatory,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class StudentFee:
    """A fee item allocated to one student for a term/year."""

    student_fee_id: int
    school_id: int
    student_id: int
    fee_item_id: int
    amount: Decimal
    term: int
    year: int
    status: FeeStatus = FeeStatus.PENDING
    bursary_applied: bool = False
    item_name: Optional[str] = None


@dataclass(frozen=True)
class StudentAccount:
    """Per student/term/year totals. balance == total_fees - amount_paid."""

    school_id: int
    student_id: int
    term: int
    year: int
    total_fees: Decimal
    amount_paid: Decimal
    balance: Decimal
    last_payment_date: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "term": self.term,
            "year": self.year,
            "total_fees": str(self.total_fees),
            "amount_paid": str(self.amount_paid),
            "balance": str(self.balance),
            "last_payment_date": self.last_payment_date.isoformat() if self.last_payment_date else None,
        }


@dataclass(frozen=True)
class PaymentMethod:
    payment_method_id: int
    school_id: int
    name: str
    description: Optional[str] = None
    is_active: bool = True
