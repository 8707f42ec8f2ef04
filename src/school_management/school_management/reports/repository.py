from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence


class ReportRepository(Protocol):
    """Aggregates over completed transactions; windows are [start, end)."""

    def collection_summary(self, *, school_id: int, start: datetime, end: datetime) -> dict:
        """transaction_count, unique_payers, total_collected, avg/min/max_transaction."""

        raise NotImplementedError

    def method_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def top_payers(self, *, school_id: int, start: datetime, end: datetime, limit: int = 10) -> Sequence[dict]:
        raise NotImplementedError

    def hourly_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def daily_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def weekly_breakdown(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def class_collections(self, *, school_id: int, start: datetime, end: datetime) -> Sequence[dict]:
        raise NotImplementedError

    def outstanding_summary(self, *, school_id: int, year: int) -> dict:
        raise NotImplementedError

    def top_debtors(self, *, school_id: int, year: int, limit: int = 20) -> Sequence[dict]:
        raise NotImplementedError

    def term_collection_summary(self, *, school_id: int, term: int, year: int) -> dict:
        raise NotImplementedError

    def allocation_summary(self, *, school_id: int, term: int, year: int) -> dict:
        raise NotImplementedError

    def class_performance(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        raise NotImplementedError

    def fee_item_performance(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        raise NotImplementedError

    def student_payment_status(self, *, school_id: int, term: int, year: int) -> dict:
        raise NotImplementedError

    def term_comparison(self, *, school_id: int, year: int) -> Sequence[dict]:
        raise NotImplementedError
