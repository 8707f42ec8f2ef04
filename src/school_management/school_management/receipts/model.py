from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class Receipt:
    receipt_id: int
    school_id: int
    transaction_id: int
    student_id: int
    receipt_number: str
    amount: Decimal
    previous_balance: Decimal
    current_balance: Decimal
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "receipt_id": self.receipt_id,
            "transaction_id": self.transaction_id,
            "student_id": self.student_id,
            "receipt_number": self.receipt_number,
            "amount": str(self.amount),
            "previous_balance": str(self.previous_balance),
            "current_balance": str(self.current_balance),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Invoice:
    invoice_id: int
    school_id: int
    student_id: int
    invoice_number: str
    term: int
    year: int
    total_amount: Decimal
    created_at: datetime
    items: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "student_id": self.student_id,
            "invoice_number": self.invoice_number,
            "term": self.term,
            "year": self.year,
            "total_amount": str(self.total_amount),
            "items": self.items,
            "created_at": self.created_at.isoformat(),
        }
