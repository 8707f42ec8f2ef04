from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import now_local
from ..common.validators import (
    optional_id,
    require_amount,
    require_choice,
    require_non_empty,
    require_term,
    require_year,
)
from ..core.enums import AllocationTarget, FeeAppliesTo
from ..core.exceptions import NotFoundError, ValidationError
from ..students.repository import ClassRepository, StudentRepository
from .accounts import StudentAccountService
from .model import FeeItem, PaymentMethod, StudentAccount
from .repository import FeeRepository, PaymentMethodRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationResult:
    created: int
    updated: int
    skipped: list[int]
    account: StudentAccount


@dataclass(frozen=True)
class BulkAllocationResult:
    students_affected: int
    allocations_created: int
    skipped_existing: int
    student_ids: list[int] = field(default_factory=list)


def _parse_ids(values: Iterable, field_name: str) -> list[int]:
    if values and not isinstance(values, (list, tuple, set)):
        raise ValidationError(f"{field_name} must be a list of ids")
    ids: list[int] = []
    for v in values or []:
        item_id = optional_id(v, field_name)
        if item_id is None:
            raise ValidationError(f"{field_name} must contain numeric ids")
        ids.append(item_id)
    if not ids:
        raise ValidationError(f"{field_name} must not be empty")
    # keep order, drop duplicates
    return list(dict.fromkeys(ids))


def _parse_custom_amounts(custom_amounts) -> dict[int, Decimal]:
    if not custom_amounts:
        return {}
    if not isinstance(custom_amounts, dict):
        raise ValidationError("Custom amounts must map fee item ids to amounts")
    parsed: dict[int, Decimal] = {}
    for key, value in custom_amounts.items():
        item_id = optional_id(key, "Custom amount fee item")
        if item_id is None:
            raise ValidationError("Custom amount fee item must be a number")
        parsed[item_id] = require_amount(value, "Custom amount")
    return parsed


class FeeService:
    """Use cases: fee items, fee allocation and payment methods."""

    def __init__(
        self,
        fees: FeeRepository,
        students: StudentRepository,
        classes: ClassRepository,
        accounts: StudentAccountService,
        methods: PaymentMethodRepository,
        *,
        transaction: Optional[Callable] = None,
    ):
        self._fees = fees
        self._students = students
        self._classes = classes
        self._accounts = accounts
        self._methods = methods
        self._transaction = transaction or nullcontext

    # Fee items
    def create_fee_item(
        self,
        *,
        school_id: int,
        item_name: str,
        amount,
        description: Optional[str] = None,
        applies_to: str = FeeAppliesTo.ALL.value,
        class_id: Optional[int] = None,
        term=None,
        year=None,
        is_mandatory: bool = True,
        created_by: Optional[int] = None,
    ) -> FeeItem:
        item_name = require_non_empty(item_name, "Item name")
        amount = require_amount(amount)
        applies = require_choice(applies_to or FeeAppliesTo.ALL.value, FeeAppliesTo, "Applies to")
        term = require_term(term) if term not in (None, "") else None
        year = require_year(year) if year not in (None, "") else None

        class_id = optional_id(class_id, "Class")
        if applies == FeeAppliesTo.CLASS:
            if not class_id:
                raise ValidationError("A class is required for class fees")
            if not self._classes.get_by_id(school_id=int(school_id), class_id=class_id):
                raise NotFoundError("Class not found")
        else:
            class_id = None

        fee_item_id = self._fees.create_fee_item(
            school_id=int(school_id),
            item_name=item_name,
            description=(description or "").strip() or None,
            amount=amount,
            applies_to=applies,
            class_id=class_id,
            term=term,
            year=year,
            is_mandatory=bool(is_mandatory),
            created_by=created_by,
        )
        logger.info("Fee item %s '%s' (%s) created in school %s", fee_item_id, item_name, amount, school_id)
        return self.get_fee_item(school_id=school_id, fee_item_id=fee_item_id)

    def get_fee_item(self, *, school_id: int, fee_item_id: int) -> FeeItem:
        item = self._fees.get_fee_item(school_id=int(school_id), fee_item_id=int(fee_item_id))
        if not item:
            raise NotFoundError("Fee item not found")
        return item

    def list_fee_items(
        self,
        *,
        school_id: int,
        term=None,
        year=None,
        applies_to: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[FeeItem]:
        return list(
            self._fees.list_fee_items(
                school_id=int(school_id),
                term=require_term(term) if term not in (None, "") else None,
                year=require_year(year) if year not in (None, "") else None,
                applies_to=require_choice(applies_to, FeeAppliesTo, "Applies to") if applies_to else None,
                is_active=is_active,
            )
        )

    def update_fee_item(self, *, school_id: int, fee_item_id: int, data: dict) -> FeeItem:
        """Partial update; a payload with nothing to change leaves the item as is."""
        current = self.get_fee_item(school_id=school_id, fee_item_id=fee_item_id)
        fields: dict = {}
        if "item_name" in data:
            fields["item_name"] = require_non_empty(data["item_name"], "Item name")
        if "description" in data:
            fields["description"] = (data["description"] or "").strip() or None
        if "amount" in data:
            fields["amount"] = require_amount(data["amount"])
        if "applies_to" in data:
            fields["applies_to"] = require_choice(data["applies_to"], FeeAppliesTo, "Applies to")
        if "class_id" in data:
            fields["class_id"] = optional_id(data["class_id"], "Class")
        if "term" in data:
            fields["term"] = require_term(data["term"]) if data["term"] not in (None, "") else None
        if "year" in data:
            fields["year"] = require_year(data["year"]) if data["year"] not in (None, "") else None
        for flag in ("is_mandatory", "is_active"):
            if flag in data:
                fields[flag] = bool(data[flag])

        applies = fields.get("applies_to", current.applies_to)
        class_id = fields.get("class_id", current.class_id)
        if applies == FeeAppliesTo.CLASS and not class_id:
            raise ValidationError("A class is required for class fees")

        if not fields:
            return current

        self._fees.update_fee_item(school_id=int(school_id), fee_item_id=int(fee_item_id), fields=fields)
        return self.get_fee_item(school_id=school_id, fee_item_id=fee_item_id)

    def delete_fee_item(self, *, school_id: int, fee_item_id: int, now: Optional[datetime] = None) -> None:
        self.get_fee_item(school_id=school_id, fee_item_id=fee_item_id)
        if not self._fees.soft_delete_fee_item(
            school_id=int(school_id), fee_item_id=int(fee_item_id), deleted_at=now or now_local()
        ):
            raise ValidationError("Could not delete fee item")

    # Allocation
    def allocate_fees_to_student(
        self,
        *,
        school_id: int,
        student_id: int,
        fee_item_ids: Iterable,
        term,
        year,
        custom_amounts: Optional[dict] = None,
        allocated_by: Optional[int] = None,
    ) -> AllocationResult:
        """Allocate items to one student; re-allocating an item overwrites its amount."""
        term, year = require_term(term), require_year(year)
        item_ids = _parse_ids(fee_item_ids, "Fee items")
        custom = _parse_custom_amounts(custom_amounts)

        if not self._students.get_by_id(school_id=int(school_id), student_id=int(student_id)):
            raise NotFoundError("Student not found")

        created = updated = 0
        skipped: list[int] = []
        with self._transaction():
            for item_id in item_ids:
                item = self._fees.get_fee_item(school_id=int(school_id), fee_item_id=item_id)
                if not item:
                    skipped.append(item_id)
                    continue
                amount = custom.get(item_id, item.amount)

                existing = self._fees.get_student_fee(
                    school_id=int(school_id), student_id=int(student_id), fee_item_id=item_id, term=term, year=year
                )
                if existing:
                    self._fees.update_student_fee_amount(student_fee_id=existing.student_fee_id, amount=amount)
                    updated += 1
                else:
                    self._fees.create_student_fee(
                        school_id=int(school_id),
                        student_id=int(student_id),
                        fee_item_id=item_id,
                        amount=amount,
                        term=term,
                        year=year,
                        allocated_by=allocated_by,
                    )
                    created += 1

            account = self._accounts.recalculate(school_id=school_id, student_id=student_id, term=term, year=year)

        if skipped:
            logger.warning("Skipped unknown fee items %s for student %s", skipped, student_id)
        return AllocationResult(created=created, updated=updated, skipped=skipped, account=account)

    def _target_students(self, school_id: int, target: AllocationTarget, class_id, stream_id) -> list[int]:
        class_id, stream_id = optional_id(class_id, "Class"), optional_id(stream_id, "Stream")
        if target == AllocationTarget.ALL:
            return self._students.list_active_ids(school_id=int(school_id))
        if target == AllocationTarget.CLASS:
            if not class_id:
                raise ValidationError("A class is required for class allocation")
            return self._students.list_active_ids(school_id=int(school_id), class_id=class_id)
        if not stream_id:
            raise ValidationError("A stream is required for stream allocation")
        return self._students.list_active_ids(school_id=int(school_id), stream_id=stream_id)

    def bulk_allocate_fees(
        self,
        *,
        school_id: int,
        target_type: str,
        fee_item_ids: Iterable,
        term,
        year,
        class_id: Optional[int] = None,
        stream_id: Optional[int] = None,
        allocated_by: Optional[int] = None,
    ) -> BulkAllocationResult:
        """Allocate items to every active student of the target; existing allocations are kept."""
        term, year = require_term(term), require_year(year)
        target = require_choice(target_type, AllocationTarget, "Target type")
        item_ids = _parse_ids(fee_item_ids, "Fee items")

        items: list[FeeItem] = []
        for item_id in item_ids:
            item = self._fees.get_fee_item(school_id=int(school_id), fee_item_id=item_id)
            if item:
                items.append(item)
        if not items:
            raise ValidationError("None of the selected fee items exist")

        created = skipped = 0
        with self._transaction():
            student_ids = self._target_students(school_id, target, class_id, stream_id)
            if not student_ids:
                raise ValidationError("No students found for allocation")

            for student_id in student_ids:
                for item in items:
                    existing = self._fees.get_student_fee(
                        school_id=int(school_id),
                        student_id=student_id,
                        fee_item_id=item.fee_item_id,
                        term=term,
                        year=year,
                    )
                    if existing:
                        skipped += 1
                        continue
                    self._fees.create_student_fee(
                        school_id=int(school_id),
                        student_id=student_id,
                        fee_item_id=item.fee_item_id,
                        amount=item.amount,
                        term=term,
                        year=year,
                        allocated_by=allocated_by,
                    )
                    created += 1
                self._accounts.recalculate(school_id=school_id, student_id=student_id, term=term, year=year)

        logger.info(
            "Bulk allocation in school %s (%s): %s students, %s created, %s skipped",
            school_id,
            target.value,
            len(student_ids),
            created,
            skipped,
        )
        return BulkAllocationResult(
            students_affected=len(student_ids),
            allocations_created=created,
            skipped_existing=skipped,
            student_ids=student_ids,
        )

    def list_unallocated_students(self, *, school_id: int, term, year) -> list[dict]:
        return list(
            self._fees.list_unallocated_students(school_id=int(school_id), term=require_term(term), year=require_year(year))
        )

    def list_allocated_fees(
        self,
        *,
        school_id: int,
        term,
        year,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> list[dict]:
        return list(
            self._fees.list_allocated_fees(
                school_id=int(school_id),
                term=require_term(term),
                year=require_year(year),
                student_id=student_id,
                class_id=class_id,
            )
        )

    def get_student_account(self, *, school_id: int, student_id: int, term, year) -> StudentAccount:
        return self._accounts.get_account(
            school_id=school_id, student_id=student_id, term=require_term(term), year=require_year(year)
        )

    def outstanding_total(self, *, school_id: int, student_id: int, term, year) -> Decimal:
        return self.get_student_account(school_id=school_id, student_id=student_id, term=term, year=year).balance

    # Payment methods
    def create_payment_method(self, *, school_id: int, name: str, description: Optional[str] = None) -> PaymentMethod:
        name = require_non_empty(name, "Payment method name")
        method_id = self._methods.create_method(
            school_id=int(school_id), name=name, description=(description or "").strip() or None
        )
        return PaymentMethod(
            payment_method_id=method_id,
            school_id=int(school_id),
            name=name,
            description=(description or "").strip() or None,
        )

    def list_payment_methods(self, *, school_id: int, active_only: bool = True) -> list[PaymentMethod]:
        return list(self._methods.list_for_school(school_id=int(school_id), active_only=active_only))
