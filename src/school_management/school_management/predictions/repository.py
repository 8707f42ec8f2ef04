from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence


class PredictionRepository(Protocol):
    def payment_history(self, *, school_id: int, student_id: int) -> Sequence[dict]:
        """Completed payments of a student, oldest first: transaction_date, amount."""

        raise NotImplementedError

    def account(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[dict]:
        """total_fees, amount_paid, balance, created_at."""

        raise NotImplementedError

    def completion_history(self, *, school_id: int, student_id: int) -> dict:
        """total_terms, completed_terms."""

        raise NotImplementedError

    def payment_count(self, *, school_id: int, student_id: int, term: int, year: int) -> int:
        raise NotImplementedError

    def monthly_totals(self, *, school_id: int, since: datetime) -> Sequence[dict]:
        """year, month, total_collected, transaction_count; chronological."""

        raise NotImplementedError

    def class_accounts(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        raise NotImplementedError

    def amounts_since(self, *, school_id: int, since: datetime) -> Sequence:
        raise NotImplementedError

    def payments_since(self, *, school_id: int, since: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def high_risk_students(
        self, *, school_id: int, term: int, year: int, max_payment_rate: float, limit: int
    ) -> Sequence[dict]:
        raise NotImplementedError
