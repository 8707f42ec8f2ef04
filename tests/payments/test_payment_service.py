from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from src.school_management.school_management.core.enums import FeeStatus, TransactionStatus
from src.school_management.school_management.core.exceptions import DatabaseError, NotFoundError, ValidationError
from src.school_management.school_management.finance.accounts import fee_status_for


@pytest.fixture
def billed(world, admit):
    """A student with 500,000 tuition and 100,000 meals allocated for term 1."""
    student = admit()
    tuition = world.fee_service.create_fee_item(school_id=1, item_name="Tuition", amount=500000)
    meals = world.fee_service.create_fee_item(school_id=1, item_name="Meals", amount=100000)
    world.fee_service.allocate_fees_to_student(
        school_id=1,
        student_id=student.student_id,
        fee_item_ids=[tuition.fee_item_id, meals.fee_item_id],
        term=1,
        year=2026,
    )
    return student, tuition, meals


def _pay(world, student, now, **extra):
    payload = {"student_id": student.student_id, "amount": "200000", "term": 1, "year": 2026}
    payload.update(extra)
    return world.payment_service.record_payment(school_id=1, payload=payload, recorded_by=1, now=now)


def test_fee_status_for():
    assert fee_status_for(Decimal("0"), Decimal("100")) == FeeStatus.PENDING
    assert fee_status_for(Decimal("40"), Decimal("100")) == FeeStatus.PARTIAL
    assert fee_status_for(Decimal("100"), Decimal("100")) == FeeStatus.PAID


def test_payment_updates_balance_fee_status_and_documents(world, billed, fixed_now):
    student, tuition, _ = billed

    result = _pay(world, student, fixed_now, fee_item_id=tuition.fee_item_id, payer_name=" Mary Nakato ")

    assert result.balance == Decimal("400000.00")
    fee = world.fees.get_student_fee(
        school_id=1, student_id=student.student_id, fee_item_id=tuition.fee_item_id, term=1, year=2026
    )
    assert fee.status == FeeStatus.PARTIAL
    assert world.transactions.get_by_id(school_id=1, transaction_id=result.transaction_id).payer_name == "Mary Nakato"

    assert result.receipt["receipt_number"] == "REC-2026-000001"
    assert result.receipt["previous_balance"] == "600000.00"
    assert result.receipt["current_balance"] == "400000.00"
    assert result.invoice["total_amount"] == "400000.00"
    assert "payment_recorded" in world.audit.actions()


def test_full_payment_marks_fee_paid_and_skips_invoice(world, billed, fixed_now):
    student, tuition, meals = billed
    _pay(world, student, fixed_now, amount=500000, fee_item_id=tuition.fee_item_id)

    result = _pay(world, student, fixed_now, amount=100000, fee_item_id=meals.fee_item_id)

    assert result.balance == Decimal("0.00")
    assert result.invoice is None
    statuses = {f.item_name: f.status for f in world.fees.list_student_fees(school_id=1, student_id=1, term=1, year=2026)}
    assert statuses == {"Tuition": FeeStatus.PAID, "Meals": FeeStatus.PAID}


def test_payment_for_unallocated_fee_is_rejected(world, billed, fixed_now):
    student, _, _ = billed
    other = world.fee_service.create_fee_item(school_id=1, item_name="Trip", amount=30000)

    with pytest.raises(NotFoundError):
        _pay(world, student, fixed_now, fee_item_id=other.fee_item_id)
    assert world.transactions.transactions == {}


def test_payment_validation(world, billed, fixed_now):
    student, _, _ = billed
    with pytest.raises(ValidationError):
        _pay(world, student, fixed_now, amount="0")
    with pytest.raises(ValidationError):
        _pay(world, student, fixed_now, term=5)
    with pytest.raises(NotFoundError):
        _pay(world, student, fixed_now, payment_method_id=77)
    with pytest.raises(ValidationError):
        world.payment_service.record_payment(school_id=1, payload={"amount": 10, "term": 1, "year": 2026})


def test_document_failure_does_not_undo_payment(world, billed, fixed_now, monkeypatch, caplog):
    student, _, _ = billed

    def broken(**kwargs):
        raise DatabaseError("receipts table is locked")

    monkeypatch.setattr(world.document_service, "generate_receipt", broken)
    with caplog.at_level(logging.ERROR):
        result = _pay(world, student, fixed_now)

    assert result.receipt is None
    assert result.balance == Decimal("400000.00")
    assert "Receipt generation failed" in caplog.text


def test_reversal_restores_balance_and_fee_status(world, billed, fixed_now):
    student, tuition, _ = billed
    paid = _pay(world, student, fixed_now, fee_item_id=tuition.fee_item_id, amount=500000)

    txn = world.payment_service.reverse_transaction(
        school_id=1, transaction_id=paid.transaction_id, reason="Bounced cheque", reversed_by=1
    )

    assert txn.status == TransactionStatus.REVERSED
    account = world.fee_service.get_student_account(school_id=1, student_id=student.student_id, term=1, year=2026)
    assert account.balance == Decimal("600000.00")
    fee = world.fees.get_student_fee(
        school_id=1, student_id=student.student_id, fee_item_id=tuition.fee_item_id, term=1, year=2026
    )
    assert fee.status == FeeStatus.PENDING

    with pytest.raises(ValidationError):
        world.payment_service.reverse_transaction(school_id=1, transaction_id=paid.transaction_id, reason="again")
    with pytest.raises(ValidationError):
        world.payment_service.reverse_transaction(school_id=1, transaction_id=paid.transaction_id, reason="  ")


def test_list_transactions_with_inclusive_date_range(world, billed, fixed_now):
    student, _, _ = billed
    _pay(world, student, fixed_now - timedelta(days=3))
    _pay(world, student, fixed_now.replace(hour=23, minute=30))

    page = world.payment_service.list_transactions(school_id=1, date_from="2026-03-10", date_to="2026-03-10")
    assert page.total == 1

    with pytest.raises(ValidationError):
        world.payment_service.list_transactions(school_id=1, date_from="2026-03-11", date_to="2026-03-10")


def test_student_summary_and_method_stats(world, billed, fixed_now):
    student, _, _ = billed
    cash = world.fee_service.create_payment_method(school_id=1, name="Cash")
    _pay(world, student, fixed_now, amount=150000, payment_method_id=cash.payment_method_id)
    _pay(world, student, fixed_now, amount=50000)

    summary = world.payment_service.student_transaction_summary(school_id=1, student_id=student.student_id)
    assert summary["total_paid"] == "200000.00"
    assert summary["terms"][0]["balance"] == "400000.00"
    assert summary["terms"][0]["payments"] == 2

    stats = {s["payment_method"]: s for s in world.payment_service.payment_method_stats(school_id=1)}
    assert stats["method-1"]["percentage"] == 75.0
    assert stats["Unspecified"]["total_amount"] == "50000.00"
