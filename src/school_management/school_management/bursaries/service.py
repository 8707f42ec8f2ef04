from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..audit.service import AuditService
from ..common.datetime_utils import now_local, parse_optional_date
from ..common.money import to_money
from ..common.pagination import Page, normalize_page
from ..common.validators import require_amount, require_choice, require_non_empty, require_term, require_year
from ..core.enums import BursaryStatus, BursaryType
from ..core.exceptions import NotFoundError, ValidationError
from ..finance.accounts import StudentAccountService, fee_status_for
from ..finance.repository import FeeRepository
from ..students.repository import StudentRepository
from .calculator.factory import BursaryCalculatorFactory
from .model import Bursary, BursaryAdjustment
from .repository import BursaryRepository

logger = logging.getLogger(__name__)


class BursaryService:
    """Use cases: apply, approve, reject bursaries and apply their discounts to allocated fees."""

    def __init__(
        self,
        bursaries: BursaryRepository,
        fees: FeeRepository,
        students: StudentRepository,
        accounts: StudentAccountService,
        audit: AuditService,
        *,
        transaction: Optional[Callable] = None,
        factory: Optional[BursaryCalculatorFactory] = None,
    ):
        self._bursaries = bursaries
        self._fees = fees
        self._students = students
        self._accounts = accounts
        self._audit = audit
        self._transaction = transaction or nullcontext
        self._factory = factory or BursaryCalculatorFactory()

    def apply_bursary(
        self,
        *,
        school_id: int,
        payload: dict,
        applied_by: Optional[int] = None,
        auto_approve: bool = False,
        now: Optional[datetime] = None,
    ) -> Bursary:
        now = now or now_local()
        try:
            student_id = int(payload.get("student_id"))
        except (TypeError, ValueError):
            raise ValidationError("Student is required")

        bursary_type = require_choice(payload.get("bursary_type"), BursaryType, "Bursary type")
        if bursary_type == BursaryType.FULL_SPONSORSHIP:
            value = require_amount(payload.get("value") or 0, "Bursary value", allow_zero=True)
        else:
            value = require_amount(payload.get("value"), "Bursary value")
        self._factory.for_type(bursary_type).validate_value(value)

        term = require_term(payload.get("term"))
        year = require_year(payload.get("year"))
        valid_until = parse_optional_date(payload.get("valid_until"), "Valid until")
        if valid_until and valid_until < now.date():
            raise ValidationError("Valid until must not be in the past")

        if not self._students.get_by_id(school_id=int(school_id), student_id=student_id):
            raise NotFoundError("Student not found")

        with self._transaction():
            bursary_id = self._bursaries.create_bursary(
                school_id=int(school_id),
                student_id=student_id,
                bursary_type=bursary_type,
                value=value,
                reason=(payload.get("reason") or "").strip() or None,
                term=term,
                year=year,
                sponsor_name=(payload.get("sponsor_name") or "").strip() or None,
                sponsor_contact=(payload.get("sponsor_contact") or "").strip() or None,
                valid_until=valid_until,
                applied_by=applied_by,
                applied_at=now,
            )
            if auto_approve:
                self._approve(school_id, bursary_id, approved_by=applied_by, now=now)

        logger.info(
            "Bursary %s (%s %s) applied for student %s%s",
            bursary_id,
            bursary_type.value,
            value,
            student_id,
            " and approved" if auto_approve else "",
        )
        self._audit.log(
            "bursary_applied",
            user_id=applied_by,
            school_id=int(school_id),
            entity_type="bursary",
            entity_id=bursary_id,
            new_values={"student_id": student_id, "type": bursary_type.value, "value": value, "auto_approve": auto_approve},
        )
        return self.get_bursary(school_id=school_id, bursary_id=bursary_id)

    def get_bursary(self, *, school_id: int, bursary_id: int) -> Bursary:
        bursary = self._bursaries.get_by_id(school_id=int(school_id), bursary_id=int(bursary_id))
        if not bursary:
            raise NotFoundError("Bursary not found")
        return bursary

    def _approve(self, school_id: int, bursary_id: int, *, approved_by: Optional[int], now: datetime) -> list[BursaryAdjustment]:
        bursary = self.get_bursary(school_id=school_id, bursary_id=bursary_id)
        if bursary.status != BursaryStatus.PENDING:
            raise ValidationError("Only pending bursaries can be approved")
        if not self._bursaries.set_decision(
            school_id=int(school_id),
            bursary_id=int(bursary_id),
            status=BursaryStatus.APPROVED,
            decided_by=approved_by,
            decided_at=now,
        ):
            raise ValidationError("Bursary was already processed")

        calculator = self._factory.for_type(bursary.bursary_type)
        adjustments: list[BursaryAdjustment] = []
        for fee in self._fees.list_student_fees(
            school_id=int(school_id), student_id=bursary.student_id, term=bursary.term, year=bursary.year
        ):
            if fee.amount <= 0:
                continue
            waived = calculator.adjustment(fee.amount, bursary.value)
            adjustment = BursaryAdjustment(
                bursary_id=bursary.bursary_id,
                student_fee_id=fee.student_fee_id,
                original_amount=fee.amount,
                adjustment_amount=waived,
                adjusted_amount=to_money(fee.amount - waived),
            )
            self._bursaries.add_adjustment(adjustment)
            self._fees.update_student_fee_amount(
                student_fee_id=fee.student_fee_id, amount=adjustment.adjusted_amount, bursary_applied=True
            )
            paid = self._fees.paid_for_student_fee(student_fee_id=fee.student_fee_id)
            self._fees.set_student_fee_status(
                student_fee_id=fee.student_fee_id, status=fee_status_for(paid, adjustment.adjusted_amount)
            )
            adjustments.append(adjustment)

        self._accounts.recalculate(
            school_id=school_id, student_id=bursary.student_id, term=bursary.term, year=bursary.year
        )
        return adjustments

    def approve_bursary(
        self,
        *,
        school_id: int,
        bursary_id: int,
        approved_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        now = now or now_local()
        with self._transaction():
            adjustments = self._approve(school_id, bursary_id, approved_by=approved_by, now=now)

        total_waived = sum((a.adjustment_amount for a in adjustments), Decimal("0.00"))
        logger.info("Bursary %s approved: %s allocations, %s waived", bursary_id, len(adjustments), total_waived)
        self._audit.log(
            "bursary_approved",
            user_id=approved_by,
            school_id=int(school_id),
            entity_type="bursary",
            entity_id=int(bursary_id),
            new_values={"allocations": len(adjustments), "total_waived": total_waived},
        )
        return {
            "bursary": self.get_bursary(school_id=school_id, bursary_id=bursary_id).to_dict(),
            "allocations_adjusted": len(adjustments),
            "total_waived": str(to_money(total_waived)),
        }

    def reject_bursary(
        self,
        *,
        school_id: int,
        bursary_id: int,
        reason: str,
        rejected_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Bursary:
        reason = require_non_empty(reason, "Rejection reason")
        bursary = self.get_bursary(school_id=school_id, bursary_id=bursary_id)
        if bursary.status != BursaryStatus.PENDING:
            raise ValidationError("Only pending bursaries can be rejected")
        if not self._bursaries.set_decision(
            school_id=int(school_id),
            bursary_id=int(bursary_id),
            status=BursaryStatus.REJECTED,
            decided_by=rejected_by,
            decided_at=now or now_local(),
            rejection_reason=reason,
        ):
            raise ValidationError("Bursary was already processed")

        self._audit.log(
            "bursary_rejected",
            user_id=rejected_by,
            school_id=int(school_id),
            entity_type="bursary",
            entity_id=int(bursary_id),
            new_values={"reason": reason},
        )
        return self.get_bursary(school_id=school_id, bursary_id=bursary_id)

    def list_bursaries(
        self,
        *,
        school_id: int,
        page=1,
        limit=None,
        student_id: Optional[int] = None,
        status: Optional[str] = None,
        term=None,
        year=None,
    ) -> Page:
        page, limit = normalize_page(page, limit)
        filters = dict(
            school_id=int(school_id),
            student_id=int(student_id) if student_id else None,
            status=require_choice(status, BursaryStatus, "Status") if status else None,
            term=require_term(term) if term not in (None, "") else None,
            year=require_year(year) if year not in (None, "") else None,
        )
        total = self._bursaries.count(**filters)
        items = self._bursaries.search(**filters, limit=limit, offset=(page - 1) * limit)
        return Page(items=items, page=page, limit=limit, total=total)

    def bursary_stats(self, *, school_id: int, term=None, year=None) -> dict:
        stats = dict(
            self._bursaries.stats(
                school_id=int(school_id),
                term=require_term(term) if term not in (None, "") else None,
                year=require_year(year) if year not in (None, "") else None,
            )
        )
        stats["total_waived"] = str(to_money(stats.get("total_waived")))
        return stats
