from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..audit.service import AuditService
from ..common.datetime_utils import now_local, parse_optional_date
from ..common.money import to_money
from ..common.pagination import Page, normalize_page
from ..common.validators import optional_id, require_amount, require_non_empty, require_term, require_year
from ..core.enums import FeeStatus
from ..core.exceptions import DatabaseError, DomainError, NotFoundError, ValidationError
from ..finance.accounts import StudentAccountService, fee_status_for
from ..finance.repository import FeeRepository, PaymentMethodRepository
from ..students.repository import StudentRepository
from .model import NewPayment, Transaction
from .repository import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    transaction_id: int
    balance: Decimal
    receipt: Optional[dict] = None
    invoice: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "balance": str(self.balance),
            "receipt": self.receipt,
            "invoice": self.invoice,
        }


def _optional_text(value) -> Optional[str]:
    return (str(value).strip() or None) if value is not None else None


class PaymentService:
    """Use cases: record, reverse and list fee payments."""

    def __init__(
        self,
        transactions: TransactionRepository,
        fees: FeeRepository,
        students: StudentRepository,
        methods: PaymentMethodRepository,
        accounts: StudentAccountService,
        audit: AuditService,
        *,
        documents=None,
        transaction: Optional[Callable] = None,
    ):
        self._transactions = transactions
        self._fees = fees
        self._students = students
        self._methods = methods
        self._accounts = accounts
        self._audit = audit
        # receipts.service.DocumentService; optional so payments work without document storage
        self._documents = documents
        self._transaction = transaction or nullcontext

    def validate_payment(self, payload: dict) -> NewPayment:
        student_id = optional_id(payload.get("student_id"), "Student")
        if not student_id:
            raise ValidationError("Student is required")
        return NewPayment(
            student_id=student_id,
            amount=require_amount(payload.get("amount")),
            term=require_term(payload.get("term")),
            year=require_year(payload.get("year")),
            fee_item_id=optional_id(payload.get("fee_item_id"), "Fee item"),
            payment_method_id=optional_id(payload.get("payment_method_id"), "Payment method"),
            payer_name=_optional_text(payload.get("payer_name")),
            relationship_to_learner=_optional_text(payload.get("relationship_to_learner")),
            reference_number=_optional_text(payload.get("reference_number")),
            notes=_optional_text(payload.get("notes")),
        )

    def _refresh_fee_status(self, student_fee_id: int, amount: Decimal) -> FeeStatus:
        paid = self._fees.paid_for_student_fee(student_fee_id=student_fee_id)
        status = fee_status_for(paid, amount)
        self._fees.set_student_fee_status(student_fee_id=student_fee_id, status=status)
        return status

    def record_payment(
        self,
        *,
        school_id: int,
        payload: dict,
        recorded_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> PaymentResult:
        now = now or now_local()
        payment = self.validate_payment(payload)

        if not self._students.get_by_id(school_id=int(school_id), student_id=payment.student_id):
            raise NotFoundError("Student not found")
        if payment.payment_method_id and not self._methods.get_by_id(
            school_id=int(school_id), payment_method_id=payment.payment_method_id
        ):
            raise NotFoundError("Payment method not found")

        with self._transaction():
            student_fee = None
            if payment.fee_item_id:
                student_fee = self._fees.get_student_fee(
                    school_id=int(school_id),
                    student_id=payment.student_id,
                    fee_item_id=payment.fee_item_id,
                    term=payment.term,
                    year=payment.year,
                )
                if not student_fee:
                    raise NotFoundError("Fee item is not allocated to this student for the term")

            transaction_id = self._transactions.create_transaction(
                school_id=int(school_id),
                student_id=payment.student_id,
                student_fee_id=student_fee.student_fee_id if student_fee else None,
                amount=payment.amount,
                payment_method_id=payment.payment_method_id,
                payer_name=payment.payer_name,
                relationship_to_learner=payment.relationship_to_learner,
                reference_number=payment.reference_number,
                term=payment.term,
                year=payment.year,
                notes=payment.notes,
                recorded_by=recorded_by,
                transaction_date=now,
            )
            if student_fee:
                self._refresh_fee_status(student_fee.student_fee_id, student_fee.amount)

            account = self._accounts.recalculate(
                school_id=school_id,
                student_id=payment.student_id,
                term=payment.term,
                year=payment.year,
                last_payment_date=now,
            )

        logger.info(
            "Payment %s of %s recorded for student %s (school %s)",
            transaction_id,
            payment.amount,
            payment.student_id,
            school_id,
        )
        self._audit.log(
            "payment_recorded",
            user_id=recorded_by,
            school_id=int(school_id),
            entity_type="transaction",
            entity_id=transaction_id,
            new_values={"student_id": payment.student_id, "amount": payment.amount, "balance": account.balance},
        )

        receipt, invoice = self._generate_documents(school_id, transaction_id, payment, account.balance, now)
        return PaymentResult(transaction_id=transaction_id, balance=account.balance, receipt=receipt, invoice=invoice)

    def _generate_documents(self, school_id, transaction_id, payment: NewPayment, balance: Decimal, now):
        """Receipt (and invoice while a balance remains); the payment is already committed."""
        if self._documents is None:
            return None, None

        receipt = invoice = None
        try:
            receipt = self._documents.generate_receipt(school_id=school_id, transaction_id=transaction_id, now=now)
        except (DatabaseError, DomainError):
            logger.exception("Receipt generation failed for transaction %s", transaction_id)

        if balance > 0:
            try:
                invoice = self._documents.generate_invoice(
                    school_id=school_id, student_id=payment.student_id, term=payment.term, year=payment.year, now=now
                )
            except (DatabaseError, DomainError):
                logger.exception("Invoice generation failed for student %s", payment.student_id)
        return receipt, invoice

    def get_transaction(self, *, school_id: int, transaction_id: int) -> Transaction:
        txn = self._transactions.get_by_id(school_id=int(school_id), transaction_id=int(transaction_id))
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def reverse_transaction(
        self,
        *,
        school_id: int,
        transaction_id: int,
        reason: str,
        reversed_by: Optional[int] = None,
    ) -> Transaction:
        reason = require_non_empty(reason, "Reversal reason")
        with self._transaction():
            txn = self.get_transaction(school_id=school_id, transaction_id=transaction_id)
            if not txn.is_completed:
                raise ValidationError("Only completed transactions can be reversed")
            if not self._transactions.mark_reversed(
                school_id=int(school_id), transaction_id=int(transaction_id), reason=reason
            ):
                raise ValidationError("Transaction was already reversed")

            if txn.student_fee_id:
                student_fee = self._fees.get_student_fee_by_id(
                    school_id=int(school_id), student_fee_id=txn.student_fee_id
                )
                if student_fee:
                    self._refresh_fee_status(student_fee.student_fee_id, student_fee.amount)

            self._accounts.recalculate(school_id=school_id, student_id=txn.student_id, term=txn.term, year=txn.year)

        logger.warning("Transaction %s reversed in school %s: %s", transaction_id, school_id, reason)
        self._audit.log(
            "payment_reversed",
            user_id=reversed_by,
            school_id=int(school_id),
            entity_type="transaction",
            entity_id=int(transaction_id),
            old_values={"status": txn.status.value, "amount": txn.amount},
            new_values={"status": "reversed", "reason": reason},
        )
        return self.get_transaction(school_id=school_id, transaction_id=transaction_id)

    def list_transactions(
        self,
        *,
        school_id: int,
        page=1,
        limit=None,
        student_id: Optional[int] = None,
        term=None,
        year=None,
        payment_method_id: Optional[int] = None,
        date_from=None,
        date_to=None,
    ) -> Page:
        page, limit = normalize_page(page, limit)
        start = parse_optional_date(date_from, "Start date")
        end = parse_optional_date(date_to, "End date")
        if start and end and start > end:
            raise ValidationError("Start date must be before end date")

        filters = dict(
            school_id=int(school_id),
            student_id=optional_id(student_id, "Student"),
            term=require_term(term) if term not in (None, "") else None,
            year=require_year(year) if year not in (None, "") else None,
            payment_method_id=optional_id(payment_method_id, "Payment method"),
            date_from=datetime.combine(start, datetime.min.time()) if start else None,
            # inclusive end date
            date_to=datetime.combine(end, datetime.max.time()) if end else None,
        )
        total = self._transactions.count(**filters)
        items = self._transactions.search(**filters, limit=limit, offset=(page - 1) * limit)
        return Page(items=items, page=page, limit=limit, total=total)

    def student_transaction_summary(self, *, school_id: int, student_id: int) -> dict:
        if not self._students.get_by_id(school_id=int(school_id), student_id=int(student_id)):
            raise NotFoundError("Student not found")
        terms = []
        total = to_money(0)
        for row in self._transactions.student_summary(school_id=int(school_id), student_id=int(student_id)):
            paid = to_money(row["total_paid"])
            total += paid
            account = self._accounts.get_account(
                school_id=school_id, student_id=student_id, term=int(row["term"]), year=int(row["year"])
            )
            terms.append(
                {
                    "term": int(row["term"]),
                    "year": int(row["year"]),
                    "payments": int(row["payments"]),
                    "total_paid": str(paid),
                    "balance": str(account.balance),
                    "last_payment": row["last_payment"].isoformat() if row.get("last_payment") else None,
                }
            )
        return {"student_id": int(student_id), "total_paid": str(total), "terms": terms}

    def payment_method_stats(self, *, school_id: int, date_from=None, date_to=None) -> list[dict]:
        start = parse_optional_date(date_from, "Start date")
        end = parse_optional_date(date_to, "End date")
        rows = self._transactions.method_stats(
            school_id=int(school_id),
            date_from=datetime.combine(start, datetime.min.time()) if start else None,
            date_to=datetime.combine(end, datetime.max.time()) if end else None,
        )
        grand_total = sum((to_money(r["total_amount"]) for r in rows), Decimal("0"))
        stats = []
        for r in rows:
            amount = to_money(r["total_amount"])
            share = float(amount / grand_total * 100) if grand_total else 0.0
            stats.append(
                {
                    "payment_method": r["payment_method"],
                    "payments": int(r["payments"]),
                    "total_amount": str(amount),
                    "percentage": round(share, 2),
                }
            )
        return stats
