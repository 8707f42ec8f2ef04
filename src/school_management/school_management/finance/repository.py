from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import FeeAppliesTo, FeeStatus
from .model import FeeItem, PaymentMethod, StudentAccount, StudentFee


class FeeRepository(Protocol):
    # Fee items
    def create_fee_item(
        self,
        *,
        school_id: int,
        item_name: str,
        description: Optional[str],
        amount: Decimal,
        applies_to: FeeAppliesTo,
        class_id: Optional[int],
        term: Optional[int],
        year: Optional[int],
        is_mandatory: bool,
        created_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def get_fee_item(self, *, school_id: int, fee_item_id: int) -> Optional[FeeItem]:
        raise NotImplementedError

    def list_fee_items(
        self,
        *,
        school_id: int,
        term: Optional[int] = None,
        year: Optional[int] = None,
        applies_to: Optional[FeeAppliesTo] = None,
        is_active: Optional[bool] = None,
    ) -> Sequence[FeeItem]:
        """A term filter also matches items without a term."""

        raise NotImplementedError

    def update_fee_item(self, *, school_id: int, fee_item_id: int, fields: dict) -> bool:
        raise NotImplementedError

    def soft_delete_fee_item(self, *, school_id: int, fee_item_id: int, deleted_at: datetime) -> bool:
        raise NotImplementedError

    # Allocations
    def get_student_fee(
        self, *, school_id: int, student_id: int, fee_item_id: int, term: int, year: int
    ) -> Optional[StudentFee]:
        raise NotImplementedError

    def get_student_fee_by_id(self, *, school_id: int, student_fee_id: int) -> Optional[StudentFee]:
        raise NotImplementedError

    def create_student_fee(
        self,
        *,
        school_id: int,
        student_id: int,
        fee_item_id: int,
        amount: Decimal,
        term: int,
        year: int,
        allocated_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def update_student_fee_amount(self, *, student_fee_id: int, amount: Decimal, bursary_applied: Optional[bool] = None) -> bool:
        raise NotImplementedError

    def set_student_fee_status(self, *, student_fee_id: int, status: FeeStatus) -> bool:
        raise NotImplementedError

    def list_student_fees(self, *, school_id: int, student_id: int, term: int, year: int) -> Sequence[StudentFee]:
        raise NotImplementedError

    def paid_for_student_fee(self, *, student_fee_id: int) -> Decimal:
        """Sum of completed payments linked to one allocation."""

        raise NotImplementedError

    def list_unallocated_students(self, *, school_id: int, term: int, year: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_allocated_fees(
        self,
        *,
        school_id: int,
        term: int,
        year: int,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> Sequence[dict]:
        """Allocation rows with amount_paid and balance per fee."""

        raise NotImplementedError


class AccountRepository(Protocol):
    def total_fees(self, *, school_id: int, student_id: int, term: int, year: int) -> Decimal:
        raise NotImplementedError

    def total_paid(self, *, school_id: int, student_id: int, term: int, year: int) -> Decimal:
        raise NotImplementedError

    def last_payment_date(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[datetime]:
        raise NotImplementedError

    def upsert_account(
        self,
        *,
        school_id: int,
        student_id: int,
        term: int,
        year: int,
        total_fees: Decimal,
        amount_paid: Decimal,
        balance: Decimal,
        last_payment_date: Optional[datetime],
    ) -> None:
        raise NotImplementedError

    def get_account(self, *, school_id: int, student_id: int, term: int, year: int) -> Optional[StudentAccount]:
        raise NotImplementedError

    def list_accounts_for_student(self, *, school_id: int, student_id: int) -> Sequence[StudentAccount]:
        raise NotImplementedError


class PaymentMethodRepository(Protocol):
    def create_method(self, *, school_id: int, name: str, description: Optional[str]) -> int:
        raise NotImplementedError

    def get_by_id(self, *, school_id: int, payment_method_id: int) -> Optional[PaymentMethod]:
        raise NotImplementedError

    def list_for_school(self, *, school_id: int, active_only: bool = True) -> Sequence[PaymentMethod]:
        raise NotImplementedError
