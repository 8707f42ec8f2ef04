from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import TransactionStatus


@dataclass(frozen=True)
class Transaction:
    transaction_id: int
    school_id: int
    student_id: int
    amount: Decimal
    term: int
    year: int
    transaction_date: datetime
    student_fee_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    payer_name: Optional[str] = None
    relationship_to_learner: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    reversal_reason: Optional[str] = None
    recorded_by: Optional[int] = None
    # joined for listings
    student_name: Optional[str] = None
    admission_no: Optional[str] = None
    payment_method: Optional[str] = None
    item_name: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "admission_no": self.admission_no,
            "student_fee_id": self.student_fee_id,
            "item_name": self.item_name,
            "amount": str(self.amount),
            "payment_method_id": self.payment_method_id,
            "payment_method": self.payment_method,
            "payer_name": self.payer_name,
            "relationship_to_learner": self.relationship_to_learner,
            "reference_number": self.reference_number,
            "term": self.term,
            "year": self.year,
            "notes": self.notes,
            "status": self.status.value,
            "reversal_reason": self.reversal_reason,
            "transaction_date": self.transaction_date.isoformat(),
        }


@dataclass(frozen=True)
class NewPayment:
    """Validated payment input."""

    student_id: int
    amount: Decimal
    term: int
    year: int
    fee_item_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    payer_name: Optional[str] = None
    relationship_to_learner: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
