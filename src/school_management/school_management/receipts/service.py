from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..common.datetime_utils import now_local
from ..common.money import to_money
from ..common.validators import require_term, require_year
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..finance.accounts import StudentAccountService
from ..finance.repository import FeeRepository
from ..payments.model import Transaction
from ..payments.repository import TransactionRepository
from ..schools.repository import SchoolRepository
from ..students.repository import StudentRepository
from .model import Receipt
from .qr import make_qr_png
from .repository import DocumentRepository

logger = logging.getLogger(__name__)


def receipt_number_for(txn: Transaction) -> str:
    return f"REC-{txn.transaction_date.year}-{txn.transaction_id:06d}"


def invoice_number_for(*, student_id: int, term: int, year: int, now: datetime) -> str:
    return f"INV-{year}-{term}-{int(student_id):06d}-{int(now.timestamp() * 1000)}"


class DocumentService:
    """Receipts and invoices as document data; layout is left to the client."""

    def __init__(
        self,
        documents: DocumentRepository,
        transactions: TransactionRepository,
        students: StudentRepository,
        schools: SchoolRepository,
        fees: FeeRepository,
        accounts: StudentAccountService,
        *,
        verify_url: str = "",
    ):
        self._documents = documents
        self._transactions = transactions
        self._students = students
        self._schools = schools
        self._fees = fees
        self._accounts = accounts
        self._verify_url = verify_url or ""

    def _school_header(self, school_id: int) -> dict:
        school = self._schools.get_by_id(int(school_id))
        if not school:
            return {"school_id": int(school_id)}
        return {
            "school_id": school.school_id,
            "name": school.name,
            "school_code": school.school_code,
            "address": school.address,
            "phone": school.phone,
            "email": school.email,
            "currency": school.currency,
        }

    def _student_block(self, school_id: int, student_id: int) -> dict:
        student = self._students.get_by_id(school_id=int(school_id), student_id=int(student_id))
        if not student:
            raise NotFoundError("Student not found")
        return {
            "student_id": student.student_id,
            "name": student.full_name,
            "admission_no": student.admission_no,
            "class_name": student.class_name,
        }

    def verification_url(self, receipt_number: str) -> str:
        if not self._verify_url:
            return receipt_number
        sep = "&" if "?" in self._verify_url else "?"
        return f"{self._verify_url}{sep}receipt={receipt_number}"

    def _receipt_document(self, receipt: Receipt, txn: Transaction) -> dict:
        return {
            **receipt.to_dict(),
            "school": self._school_header(receipt.school_id),
            "student": self._student_block(receipt.school_id, receipt.student_id),
            "fee_item": txn.item_name,
            "payment_method": txn.payment_method,
            "reference_number": txn.reference_number,
            "payer_name": txn.payer_name,
            "term": txn.term,
            "year": txn.year,
            "transaction_date": txn.transaction_date.isoformat(),
            "verification_url": self.verification_url(receipt.receipt_number),
        }

    def generate_receipt(self, *, school_id: int, transaction_id: int, now: Optional[datetime] = None) -> dict:
        """Idempotent: a transaction has at most one receipt."""
        txn = self._transactions.get_by_id(school_id=int(school_id), transaction_id=int(transaction_id))
        if not txn:
            raise NotFoundError("Transaction not found")

        receipt = self._documents.get_receipt_by_transaction(school_id=int(school_id), transaction_id=txn.transaction_id)
        if receipt:
            return self._receipt_document(receipt, txn)

        account = self._accounts.get_account(
            school_id=school_id, student_id=txn.student_id, term=txn.term, year=txn.year
        )
        current = to_money(account.balance)
        number = receipt_number_for(txn)
        created_at = now or now_local()
        try:
            receipt_id = self._documents.create_receipt(
                school_id=int(school_id),
                transaction_id=txn.transaction_id,
                student_id=txn.student_id,
                receipt_number=number,
                amount=txn.amount,
                previous_balance=current + txn.amount,
                current_balance=current,
                created_at=created_at,
            )
        except ConflictError:
            # generated concurrently for the same transaction
            receipt = self._documents.get_receipt_by_transaction(
                school_id=int(school_id), transaction_id=txn.transaction_id
            )
            if not receipt:
                raise
            return self._receipt_document(receipt, txn)

        logger.info("Receipt %s generated for transaction %s", number, txn.transaction_id)
        receipt = Receipt(
            receipt_id=receipt_id,
            school_id=int(school_id),
            transaction_id=txn.transaction_id,
            student_id=txn.student_id,
            receipt_number=number,
            amount=txn.amount,
            previous_balance=current + txn.amount,
            current_balance=current,
            created_at=created_at,
        )
        return self._receipt_document(receipt, txn)

    def generate_invoice(
        self,
        *,
        school_id: int,
        student_id: int,
        term,
        year,
        now: Optional[datetime] = None,
    ) -> dict:
        term, year = require_term(term), require_year(year)
        now = now or now_local()
        student = self._student_block(school_id, student_id)

        rows = self._fees.list_allocated_fees(school_id=int(school_id), term=term, year=year, student_id=int(student_id))
        outstanding = [r for r in rows if to_money(r["balance"]) > 0]
        if not outstanding:
            raise ValidationError("No outstanding fees found")

        items = [
            {
                "fee_item_id": r["fee_item_id"],
                "item_name": r["item_name"],
                "amount": str(to_money(r["amount"])),
                "amount_paid": str(to_money(r["amount_paid"])),
                "balance": str(to_money(r["balance"])),
            }
            for r in outstanding
        ]
        total = sum((to_money(r["balance"]) for r in outstanding), Decimal("0.00"))
        number = invoice_number_for(student_id=student_id, term=term, year=year, now=now)

        invoice_id = self._documents.create_invoice(
            school_id=int(school_id),
            student_id=int(student_id),
            invoice_number=number,
            term=term,
            year=year,
            total_amount=total,
            items=items,
            created_at=now,
        )
        logger.info("Invoice %s generated for student %s (%s outstanding)", number, student_id, total)
        return {
            "invoice_id": invoice_id,
            "invoice_number": number,
            "term": term,
            "year": year,
            "total_amount": str(to_money(total)),
            "items": items,
            "created_at": now.isoformat(),
            "school": self._school_header(school_id),
            "student": student,
        }

    def get_receipt(self, *, school_id: int, receipt_number: str) -> dict:
        receipt = self._documents.get_receipt_by_number(school_id=int(school_id), receipt_number=receipt_number)
        if not receipt:
            raise NotFoundError("Receipt not found")
        txn = self._transactions.get_by_id(school_id=int(school_id), transaction_id=receipt.transaction_id)
        if not txn:
            raise NotFoundError("Transaction not found")
        return self._receipt_document(receipt, txn)

    def list_receipts(self, *, school_id: int, student_id: Optional[int] = None) -> list[Receipt]:
        return list(self._documents.list_receipts(school_id=int(school_id), student_id=student_id))

    def get_invoice(self, *, school_id: int, invoice_number: str) -> dict:
        invoice = self._documents.get_invoice(school_id=int(school_id), invoice_number=invoice_number)
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice.to_dict()

    def verify_receipt(self, receipt_number: str) -> dict:
        """Public check behind the receipt QR code; exposes no student details."""
        receipt = self._documents.find_receipt(str(receipt_number or "").strip())
        if not receipt:
            raise NotFoundError("Receipt not found")
        txn = self._transactions.get_by_id(school_id=receipt.school_id, transaction_id=receipt.transaction_id)
        school = self._schools.get_by_id(receipt.school_id)
        return {
            "receipt_number": receipt.receipt_number,
            "valid": bool(txn and txn.is_completed),
            "amount": str(receipt.amount),
            "issued_at": receipt.created_at.isoformat(),
            "school_name": school.name if school else None,
        }

    def receipt_qr_png(self, *, school_id: int, receipt_number: str) -> bytes:
        receipt = self._documents.get_receipt_by_number(school_id=int(school_id), receipt_number=receipt_number)
        if not receipt:
            raise NotFoundError("Receipt not found")
        return make_qr_png(self.verification_url(receipt.receipt_number))
