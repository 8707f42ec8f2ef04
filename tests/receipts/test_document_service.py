from __future__ import annotations

from datetime import datetime

import pytest

from src.school_management.school_management.core.exceptions import NotFoundError, ValidationError
from src.school_management.school_management.receipts.service import invoice_number_for


@pytest.fixture
def paid(world, admit, fixed_now):
    student = admit()
    tuition = world.fee_service.create_fee_item(school_id=1, item_name="Tuition", amount=300000)
    world.fee_service.allocate_fees_to_student(
        school_id=1, student_id=student.student_id, fee_item_ids=[tuition.fee_item_id], term=1, year=2026
    )
    result = world.payment_service.record_payment(
        school_id=1,
        payload={
            "student_id": student.student_id,
            "fee_item_id": tuition.fee_item_id,
            "amount": 100000,
            "term": 1,
            "year": 2026,
            "reference_number": "MM-778812",
        },
        now=fixed_now,
    )
    return student, result


def test_receipt_is_generated_once_per_transaction(world, paid, fixed_now):
    _, result = paid

    again = world.document_service.generate_receipt(school_id=1, transaction_id=result.transaction_id, now=fixed_now)

    assert again["receipt_number"] == result.receipt["receipt_number"]
    assert len(world.documents.receipts) == 1
    assert again["reference_number"] == "MM-778812"
    assert again["school"]["name"] == "Hillside Secondary"
    assert again["student"]["admission_no"] == "ADM-2026-00001"
    assert again["verification_url"] == "https://schools.test/verify?receipt=REC-2026-000001"


def test_get_receipt_and_qr_code(world, paid):
    world_receipt = world.document_service.get_receipt(school_id=1, receipt_number="REC-2026-000001")
    assert world_receipt["amount"] == "100000.00"

    png = world.document_service.receipt_qr_png(school_id=1, receipt_number="REC-2026-000001")
    assert png.startswith(b"\x89PNG")

    with pytest.raises(NotFoundError):
        world.document_service.get_receipt(school_id=2, receipt_number="REC-2026-000001")


def test_invoice_lists_only_outstanding_items(world, paid, fixed_now):
    student, result = paid
    number = result.invoice["invoice_number"]

    stored = world.document_service.get_invoice(school_id=1, invoice_number=number)

    assert number.startswith("INV-2026-1-000001-")
    assert stored["total_amount"] == "200000.00"
    assert [i["item_name"] for i in stored["items"]] == ["Tuition"]
    assert stored["items"][0]["amount_paid"] == "100000.00"


def test_invoice_without_outstanding_fees_is_rejected(world, admit, fixed_now):
    student = admit()
    with pytest.raises(ValidationError):
        world.document_service.generate_invoice(school_id=1, student_id=student.student_id, term=1, year=2026, now=fixed_now)


def test_invoice_number_uses_millisecond_timestamp():
    now = datetime(2026, 3, 10, 9, 0, 0, 123000)
    number = invoice_number_for(student_id=42, term=2, year=2026, now=now)

    assert number == f"INV-2026-2-000042-{int(now.timestamp() * 1000)}"
    assert number.endswith("123")


def test_public_verification_follows_reversal(world, paid):
    _, result = paid

    check = world.document_service.verify_receipt(" REC-2026-000001 ")
    assert check == {
        "receipt_number": "REC-2026-000001",
        "valid": True,
        "amount": "100000.00",
        "issued_at": check["issued_at"],
        "school_name": "Hillside Secondary",
    }

    world.payment_service.reverse_transaction(school_id=1, transaction_id=result.transaction_id, reason="Bounced")
    assert world.document_service.verify_receipt("REC-2026-000001")["valid"] is False
    with pytest.raises(NotFoundError):
        world.document_service.verify_receipt("REC-2026-999999")
