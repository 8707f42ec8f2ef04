from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .model import Invoice, Receipt


class DocumentRepository(Protocol):
    def get_receipt_by_transaction(self, *, school_id: int, transaction_id: int) -> Optional[Receipt]:
        raise NotImplementedError

    def get_receipt_by_number(self, *, school_id: int, receipt_number: str) -> Optional[Receipt]:
        raise NotImplementedError

    def find_receipt(self, receipt_number: str) -> Optional[Receipt]:
        """Look a receipt up by its globally unique number, across schools."""
        raise NotImplementedError

    def create_receipt(
        self,
        *,
        school_id: int,
        transaction_id: int,
        student_id: int,
        receipt_number: str,
        amount: Decimal,
        previous_balance: Decimal,
        current_balance: Decimal,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def list_receipts(self, *, school_id: int, student_id: Optional[int] = None, limit: int = 100) -> Sequence[Receipt]:
        raise NotImplementedError

    def create_invoice(
        self,
        *,
        school_id: int,
        student_id: int,
        invoice_number: str,
        term: int,
        year: int,
        total_amount: Decimal,
        items: list[dict],
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get_invoice(self, *, school_id: int, invoice_number: str) -> Optional[Invoice]:
        raise NotImplementedError
