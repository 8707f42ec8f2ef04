from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .model import Transaction


class TransactionRepository(Protocol):
    def create_transaction(
        self,
        *,
        school_id: int,
        student_id: int,
        student_fee_id: Optional[int],
        amount: Decimal,
        payment_method_id: Optional[int],
        payer_name: Optional[str],
        relationship_to_learner: Optional[str],
        reference_number: Optional[str],
        term: int,
        year: int,
        notes: Optional[str],
        recorded_by: Optional[int],
        transaction_date: datetime,
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, *, school_id: int, transaction_id: int) -> Optional[Transaction]:
        raise NotImplementedError

    def mark_reversed(self, *, school_id: int, transaction_id: int, reason: str) -> bool:
        """Only completed transactions are reversed; False otherwise."""

        raise NotImplementedError

    def search(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        payment_method_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Transaction]:
        raise NotImplementedError

    def count(
        self,
        *,
        school_id: int,
        student_id: Optional[int] = None,
        term: Optional[int] = None,
        year: Optional[int] = None,
        payment_method_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        raise NotImplementedError

    def student_summary(self, *, school_id: int, student_id: int) -> Sequence[dict]:
        """Completed totals per term/year: term, year, payments, total_paid, last_payment."""

        raise NotImplementedError

    def method_stats(
        self, *, school_id: int, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> Sequence[dict]:
        """Completed totals per method: payment_method, payments, total_amount."""

        raise NotImplementedError
