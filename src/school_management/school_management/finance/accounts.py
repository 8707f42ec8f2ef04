from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..common.money import to_money
from ..core.enums import FeeStatus
from .model import StudentAccount
from .repository import AccountRepository

logger = logging.getLogger(__name__)


def fee_status_for(paid: Decimal, amount: Decimal) -> FeeStatus:
    if paid >= amount:
        return FeeStatus.PAID
    if paid > 0:
        return FeeStatus.PARTIAL
    return FeeStatus.PENDING


class StudentAccountService:
    """Keeps student_account in line with allocations and payments.

    Every mutation that touches student_fees or transactions calls
    `recalculate` inside the same DB transaction.
    """

    def __init__(self, accounts: AccountRepository):
        self._accounts = accounts

    def recalculate(
        self,
        *,
        school_id: int,
        student_id: int,
        term: int,
        year: int,
        last_payment_date: Optional[datetime] = None,
    ) -> StudentAccount:
        key = dict(school_id=int(school_id), student_id=int(student_id), term=int(term), year=int(year))
        total_fees = to_money(self._accounts.total_fees(**key))
        amount_paid = to_money(self._accounts.total_paid(**key))
        balance = total_fees - amount_paid
        if last_payment_date is None:
            last_payment_date = self._accounts.last_payment_date(**key)

        self._accounts.upsert_account(
            **key,
            total_fees=total_fees,
            amount_paid=amount_paid,
            balance=balance,
            last_payment_date=last_payment_date,
        )
        logger.debug("Account %s recalculated: fees=%s paid=%s balance=%s", key, total_fees, amount_paid, balance)
        return StudentAccount(
            **key,
            total_fees=total_fees,
            amount_paid=amount_paid,
            balance=balance,
            last_payment_date=last_payment_date,
        )

    def get_account(self, *, school_id: int, student_id: int, term: int, year: int) -> StudentAccount:
        """Stored account, or an all-zero one when nothing was allocated yet."""
        account = self._accounts.get_account(
            school_id=int(school_id), student_id=int(student_id), term=int(term), year=int(year)
        )
        if account:
            return account
        zero = to_money(0)
        return StudentAccount(
            school_id=int(school_id),
            student_id=int(student_id),
            term=int(term),
            year=int(year),
            total_fees=zero,
            amount_paid=zero,
            balance=zero,
        )

    def history(self, *, school_id: int, student_id: int) -> list[StudentAccount]:
        return list(self._accounts.list_accounts_for_student(school_id=int(school_id), student_id=int(student_id)))
