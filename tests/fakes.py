"""In-memory repositories shared by the service tests."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from src.school_management.school_management.bursaries.model import Bursary
from src.school_management.school_management.common.money import to_money
from src.school_management.school_management.core.enums import (
    BillingCycle,
    BursaryStatus,
    FeeAppliesTo,
    FeeStatus,
    Role,
    StepStatus,
    StudentStatus,
    SubscriptionStatus,
    TransactionStatus,
    TrialStatus,
    UserStatus,
)
from src.school_management.school_management.core.exceptions import ConflictError
from src.school_management.school_management.finance.model import FeeItem, PaymentMethod, StudentAccount, StudentFee
from src.school_management.school_management.onboarding.model import StepRecord
from src.school_management.school_management.payments.model import Transaction
from src.school_management.school_management.receipts.model import Invoice, Receipt
from src.school_management.school_management.schools.model import School
from src.school_management.school_management.sessions.model import Session
from src.school_management.school_management.students.model import SchoolClass, Stream, Student
from src.school_management.school_management.subscriptions.model import PaymentPlan, Subscription
from src.school_management.school_management.trials.model import UserTrial
from src.school_management.school_management.users.model import User


class FakeUsers:
    def __init__(self):
        self.users: dict[int, User] = {}
        self.onboarded_at: dict[int, datetime] = {}

    def add(self, user: User) -> User:
        self.users[user.user_id] = user
        return user

    def get_by_id(self, user_id):
        return self.users.get(int(user_id))

    def get_by_login(self, identifier):
        needle = identifier.lower()
        for u in self.users.values():
            if u.username.lower() == needle or u.email.lower() == needle:
                return u
        return None

    def username_exists(self, username):
        return any(u.username.lower() == username.lower() for u in self.users.values())

    def email_exists(self, email):
        return any(u.email.lower() == email.lower() for u in self.users.values())

    def create_user(self, *, school_id, username, email, full_name, password_hash, role):
        user_id = max(self.users, default=0) + 1
        self.users[user_id] = User(
            user_id=user_id,
            school_id=school_id,
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            role=role,
        )
        return user_id

    def delete_by_id(self, user_id):
        return self.users.pop(int(user_id), None) is not None

    def set_status(self, user_id, *, status):
        if int(user_id) not in self.users:
            return False
        self.users[int(user_id)] = replace(self.users[int(user_id)], status=status)
        return True

    def set_school(self, user_id, *, school_id):
        self.users[int(user_id)] = replace(self.users[int(user_id)], school_id=school_id)
        return True

    def update_last_login(self, user_id, *, at):
        self.users[int(user_id)] = replace(self.users[int(user_id)], last_login=at)

    def mark_onboarding_completed(self, user_id, *, at):
        self.users[int(user_id)] = replace(self.users[int(user_id)], onboarding_completed=True)
        self.onboarded_at[int(user_id)] = at
        return True

    def list_for_school(self, school_id):
        return [u for u in self.users.values() if u.school_id == int(school_id)]


class FakeSessions:
    def __init__(self):
        self.sessions: dict[str, Session] = {}

    def create_session(self, *, token, user_id, school_id, ip_address, user_agent, created_at, expires_at, stay_logged_in):
        session_id = len(self.sessions) + 1
        self.sessions[token] = Session(
            session_id=session_id,
            token=token,
            user_id=user_id,
            school_id=school_id,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=created_at,
            last_activity=created_at,
            expires_at=expires_at,
            stay_logged_in=stay_logged_in,
        )
        return session_id

    def get_by_token(self, token):
        return self.sessions.get(token)

    def touch(self, token, *, at):
        if token not in self.sessions:
            return False
        self.sessions[token] = replace(self.sessions[token], last_activity=at)
        return True

    def invalidate(self, token, *, at):
        session = self.sessions.get(token)
        if not session or not session.is_active:
            return False
        self.sessions[token] = replace(session, is_active=False, logged_out_at=at)
        return True

    def invalidate_for_user(self, user_id, *, at):
        count = 0
        for token, s in list(self.sessions.items()):
            if s.user_id == int(user_id) and s.is_active:
                self.sessions[token] = replace(s, is_active=False, logged_out_at=at)
                count += 1
        return count

    def delete_expired(self, *, before):
        expired = [t for t, s in self.sessions.items() if s.expires_at < before]
        for t in expired:
            del self.sessions[t]
        return len(expired)


class FakeAudit:
    def __init__(self):
        self.rows: list[dict] = []

    def record(self, **row):
        self.rows.append(row)
        return len(self.rows)

    def list_for_school(self, school_id, *, limit=100):
        return [r for r in reversed(self.rows) if r["school_id"] == int(school_id)][:limit]

    def actions(self) -> list[str]:
        return [r["action"] for r in self.rows]


class FakeSchools:
    def __init__(self):
        self.schools: dict[int, School] = {}

    def get_by_id(self, school_id):
        return self.schools.get(int(school_id))

    def code_exists(self, school_code):
        return any(s.school_code == school_code for s in self.schools.values())

    def create_school(self, *, school_code, fields, created_by):
        school_id = len(self.schools) + 1
        self.schools[school_id] = School(school_id=school_id, school_code=school_code, **fields)
        return school_id

    def update_school(self, school_id, *, fields):
        self.schools[int(school_id)] = replace(self.schools[int(school_id)], **fields)
        return True


class FakeClasses:
    def __init__(self):
        self.classes: dict[int, SchoolClass] = {}
        self.streams: dict[int, Stream] = {}

    def create_class(self, *, school_id, name, level):
        class_id = len(self.classes) + 1
        self.classes[class_id] = SchoolClass(class_id=class_id, school_id=school_id, name=name, level=level)
        return class_id

    def get_by_id(self, *, school_id, class_id):
        c = self.classes.get(int(class_id))
        return c if c and c.school_id == int(school_id) else None

    def list_for_school(self, school_id):
        return [c for c in self.classes.values() if c.school_id == int(school_id)]

    def create_stream(self, *, school_id, class_id, name):
        stream_id = len(self.streams) + 1
        self.streams[stream_id] = Stream(stream_id=stream_id, school_id=school_id, class_id=class_id, name=name)
        return stream_id

    def get_stream(self, *, school_id, stream_id):
        s = self.streams.get(int(stream_id))
        return s if s and s.school_id == int(school_id) else None

    def list_streams(self, *, school_id, class_id):
        return [s for s in self.streams.values() if s.school_id == int(school_id) and s.class_id == int(class_id)]


class FakeStudents:
    def __init__(self, classes: Optional[FakeClasses] = None):
        self.students: dict[int, Student] = {}
        self._classes = classes or FakeClasses()

    def _visible(self, school_id):
        return [s for s in self.students.values() if s.school_id == int(school_id) and s.deleted_at is None]

    def _with_class(self, student: Student) -> Student:
        c = self._classes.classes.get(student.class_id) if student.class_id else None
        return replace(student, class_name=c.name if c else None)

    def get_by_id(self, *, school_id, student_id):
        s = self.students.get(int(student_id))
        if s and s.school_id == int(school_id) and s.deleted_at is None:
            return self._with_class(s)
        return None

    def get_by_admission_no(self, *, school_id, admission_no):
        return next((s for s in self._visible(school_id) if s.admission_no == admission_no), None)

    def find_duplicate(self, *, school_id, first_name, last_name, date_of_birth):
        for s in self._visible(school_id):
            if (
                s.first_name.lower() == first_name.lower()
                and s.last_name.lower() == last_name.lower()
                and s.date_of_birth == date_of_birth
            ):
                return s
        return None

    def max_admission_sequence(self, *, school_id, year):
        seqs = [
            int(m.group(1))
            for s in self.students.values()
            if s.school_id == int(school_id)
            for m in [re.match(rf"ADM-{year}-(\d+)$", s.admission_no)]
            if m
        ]
        return max(seqs, default=0)

    def create_student(self, *, school_id, admission_no, student, created_by):
        student_id = len(self.students) + 1
        self.students[student_id] = Student(
            student_id=student_id,
            school_id=school_id,
            admission_no=admission_no,
            first_name=student.first_name,
            last_name=student.last_name,
            other_name=student.other_name,
            date_of_birth=student.date_of_birth,
            gender=student.gender,
            status=StudentStatus.ACTIVE,
            admission_date=student.admission_date,
            class_id=student.class_id,
            stream_id=student.stream_id,
            guardian_name=student.guardian_name,
            guardian_phone=student.guardian_phone,
            phone=student.phone,
            email=student.email,
            address=student.address,
            notes=student.notes,
        )
        return student_id

    def _filtered(self, school_id, search, class_id, status):
        rows = self._visible(school_id)
        if search:
            needle = search.lower()
            rows = [
                s
                for s in rows
                if needle in s.first_name.lower() or needle in s.last_name.lower() or needle in s.admission_no.lower()
            ]
        if class_id:
            rows = [s for s in rows if s.class_id == int(class_id)]
        if status:
            rows = [s for s in rows if s.status == status]
        return rows

    def search(self, *, school_id, search=None, class_id=None, status=None, limit=50, offset=0):
        rows = self._filtered(school_id, search, class_id, status)
        return [self._with_class(s) for s in rows[offset : offset + limit]]

    def count(self, *, school_id, search=None, class_id=None, status=None):
        return len(self._filtered(school_id, search, class_id, status))

    def update_student(self, *, school_id, student_id, fields):
        self.students[int(student_id)] = replace(self.students[int(student_id)], **fields)
        return True

    def soft_delete(self, *, school_id, student_id, reason, deleted_at):
        s = self.students.get(int(student_id))
        if not s or s.deleted_at is not None:
            return False
        self.students[int(student_id)] = replace(s, status=StudentStatus.INACTIVE, deleted_at=deleted_at)
        return True

    def list_active_ids(self, *, school_id, class_id=None, stream_id=None):
        rows = [s for s in self._visible(school_id) if s.status == StudentStatus.ACTIVE]
        if class_id:
            rows = [s for s in rows if s.class_id == int(class_id)]
        if stream_id:
            rows = [s for s in rows if s.stream_id == int(stream_id)]
        return [s.student_id for s in rows]

    def move_class(self, *, school_id, from_class_id, to_class_id):
        moved = 0
        for s in self._visible(school_id):
            if s.class_id == int(from_class_id) and s.status == StudentStatus.ACTIVE:
                self.students[s.student_id] = replace(s, class_id=int(to_class_id), stream_id=None)
                moved += 1
        return moved

    def class_breakdown(self, *, school_id, class_id):
        counts: dict[tuple[str, str], int] = {}
        for s in self._visible(school_id):
            if s.class_id == int(class_id):
                key = (s.status.value, s.gender.value)
                counts[key] = counts.get(key, 0) + 1
        return [{"status": k[0], "gender": k[1], "total": v} for k, v in counts.items()]


class FakeTransactions:
    def __init__(self, students: Optional[FakeStudents] = None):
        self.transactions: dict[int, Transaction] = {}
        self._students = students

    def create_transaction(self, *, school_id, **fields):
        transaction_id = len(self.transactions) + 1
        self.transactions[transaction_id] = Transaction(transaction_id=transaction_id, school_id=school_id, **fields)
        return transaction_id

    def get_by_id(self, *, school_id, transaction_id):
        t = self.transactions.get(int(transaction_id))
        return t if t and t.school_id == int(school_id) else None

    def mark_reversed(self, *, school_id, transaction_id, reason):
        t = self.get_by_id(school_id=school_id, transaction_id=transaction_id)
        if not t or t.status != TransactionStatus.COMPLETED:
            return False
        self.transactions[t.transaction_id] = replace(t, status=TransactionStatus.REVERSED, reversal_reason=reason)
        return True

    def _filtered(self, school_id, student_id=None, term=None, year=None, payment_method_id=None, date_from=None, date_to=None):
        rows = [t for t in self.transactions.values() if t.school_id == int(school_id)]
        if student_id:
            rows = [t for t in rows if t.student_id == student_id]
        if term:
            rows = [t for t in rows if t.term == term]
        if year:
            rows = [t for t in rows if t.year == year]
        if payment_method_id:
            rows = [t for t in rows if t.payment_method_id == payment_method_id]
        if date_from:
            rows = [t for t in rows if t.transaction_date >= date_from]
        if date_to:
            rows = [t for t in rows if t.transaction_date <= date_to]
        return sorted(rows, key=lambda t: t.transaction_date, reverse=True)

    def search(self, *, school_id, limit=50, offset=0, **filters):
        return self._filtered(school_id, **filters)[offset : offset + limit]

    def count(self, *, school_id, **filters):
        return len(self._filtered(school_id, **filters))

    def completed_for(self, school_id, student_id, term, year):
        return [
            t
            for t in self.transactions.values()
            if t.school_id == int(school_id)
            and t.student_id == int(student_id)
            and t.term == int(term)
            and t.year == int(year)
            and t.status == TransactionStatus.COMPLETED
        ]

    def student_summary(self, *, school_id, student_id):
        groups: dict[tuple[int, int], list[Transaction]] = {}
        for t in self.transactions.values():
            if t.school_id == int(school_id) and t.student_id == int(student_id) and t.is_completed:
                groups.setdefault((t.year, t.term), []).append(t)
        return [
            {
                "term": term,
                "year": year,
                "payments": len(items),
                "total_paid": sum((t.amount for t in items), Decimal("0")),
                "last_payment": max(t.transaction_date for t in items),
            }
            for (year, term), items in sorted(groups.items(), reverse=True)
        ]

    def method_stats(self, *, school_id, date_from=None, date_to=None):
        groups: dict[Optional[int], list[Transaction]] = {}
        for t in self._filtered(school_id, date_from=date_from, date_to=date_to):
            if t.is_completed:
                groups.setdefault(t.payment_method_id, []).append(t)
        return [
            {
                "payment_method": f"method-{method_id}" if method_id else "Unspecified",
                "payments": len(items),
                "total_amount": sum((t.amount for t in items), Decimal("0")),
            }
            for method_id, items in groups.items()
        ]


class FakeFees:
    def __init__(self, transactions: Optional[FakeTransactions] = None, students: Optional[FakeStudents] = None):
        self.items: dict[int, FeeItem] = {}
        self.allocations: dict[int, StudentFee] = {}
        self.deleted_items: set[int] = set()
        self._transactions = transactions or FakeTransactions()
        self._students = students

    def create_fee_item(self, *, school_id, created_by, **fields):
        fee_item_id = len(self.items) + 1
        self.items[fee_item_id] = FeeItem(fee_item_id=fee_item_id, school_id=school_id, **fields)
        return fee_item_id

    def get_fee_item(self, *, school_id, fee_item_id):
        item = self.items.get(int(fee_item_id))
        if item and item.school_id == int(school_id) and item.fee_item_id not in self.deleted_items:
            return item
        return None

    def list_fee_items(self, *, school_id, term=None, year=None, applies_to=None, is_active=None):
        rows = [i for i in self.items.values() if i.school_id == int(school_id) and i.fee_item_id not in self.deleted_items]
        if term:
            rows = [i for i in rows if i.term in (None, term)]
        if year:
            rows = [i for i in rows if i.year in (None, year)]
        if applies_to:
            rows = [i for i in rows if i.applies_to == applies_to]
        if is_active is not None:
            rows = [i for i in rows if i.is_active == is_active]
        return rows

    def update_fee_item(self, *, school_id, fee_item_id, fields):
        self.items[int(fee_item_id)] = replace(self.items[int(fee_item_id)], **fields)
        return True

    def soft_delete_fee_item(self, *, school_id, fee_item_id, deleted_at):
        if int(fee_item_id) in self.deleted_items:
            return False
        self.deleted_items.add(int(fee_item_id))
        return True

    def get_student_fee(self, *, school_id, student_id, fee_item_id, term, year):
        for sf in self.allocations.values():
            if (sf.school_id, sf.student_id, sf.fee_item_id, sf.term, sf.year) == (
                int(school_id),
                int(student_id),
                int(fee_item_id),
                int(term),
                int(year),
            ):
                return sf
        return None

    def get_student_fee_by_id(self, *, school_id, student_fee_id):
        sf = self.allocations.get(int(student_fee_id))
        return sf if sf and sf.school_id == int(school_id) else None

    def create_student_fee(self, *, school_id, student_id, fee_item_id, amount, term, year, allocated_by):
        student_fee_id = len(self.allocations) + 1
        self.allocations[student_fee_id] = StudentFee(
            student_fee_id=student_fee_id,
            school_id=school_id,
            student_id=student_id,
            fee_item_id=fee_item_id,
            amount=amount,
            term=term,
            year=year,
            item_name=self.items[fee_item_id].item_name,
        )
        return student_fee_id

    def update_student_fee_amount(self, *, student_fee_id, amount, bursary_applied=None):
        sf = self.allocations[int(student_fee_id)]
        changes = {"amount": amount}
        if bursary_applied is not None:
            changes["bursary_applied"] = bursary_applied
        self.allocations[int(student_fee_id)] = replace(sf, **changes)
        return True

    def set_student_fee_status(self, *, student_fee_id, status):
        self.allocations[int(student_fee_id)] = replace(self.allocations[int(student_fee_id)], status=status)
        return True

    def list_student_fees(self, *, school_id, student_id, term, year):
        return [
            sf
            for sf in self.allocations.values()
            if (sf.school_id, sf.student_id, sf.term, sf.year) == (int(school_id), int(student_id), int(term), int(year))
        ]

    def paid_for_student_fee(self, *, student_fee_id):
        return sum(
            (
                t.amount
                for t in self._transactions.transactions.values()
                if t.student_fee_id == int(student_fee_id) and t.is_completed
            ),
            Decimal("0.00"),
        )

    def list_unallocated_students(self, *, school_id, term, year):
        allocated = {sf.student_id for sf in self.allocations.values() if sf.term == term and sf.year == year}
        students = self._students.students.values() if self._students else []
        return [
            {"student_id": s.student_id, "admission_no": s.admission_no}
            for s in students
            if s.school_id == int(school_id) and s.student_id not in allocated and s.status == StudentStatus.ACTIVE
        ]

    def list_allocated_fees(self, *, school_id, term, year, student_id=None, class_id=None):
        rows = []
        for sf in self.allocations.values():
            if sf.school_id != int(school_id) or sf.term != term or sf.year != year:
                continue
            if student_id and sf.student_id != int(student_id):
                continue
            paid = to_money(self.paid_for_student_fee(student_fee_id=sf.student_fee_id))
            rows.append(
                {
                    "student_fee_id": sf.student_fee_id,
                    "student_id": sf.student_id,
                    "fee_item_id": sf.fee_item_id,
                    "item_name": sf.item_name,
                    "amount": sf.amount,
                    "status": sf.status.value,
                    "bursary_applied": sf.bursary_applied,
                    "amount_paid": paid,
                    "balance": sf.amount - paid,
                }
            )
        return rows


class FakeAccounts:
    """Totals are computed from the fee and transaction fakes like the SQL does."""

    def __init__(self, fees: FakeFees, transactions: FakeTransactions):
        self._fees = fees
        self._transactions = transactions
        self.accounts: dict[tuple, StudentAccount] = {}

    def total_fees(self, *, school_id, student_id, term, year):
        return sum(
            (sf.amount for sf in self._fees.list_student_fees(school_id=school_id, student_id=student_id, term=term, year=year)),
            Decimal("0.00"),
        )

    def total_paid(self, *, school_id, student_id, term, year):
        return sum(
            (t.amount for t in self._transactions.completed_for(school_id, student_id, term, year)),
            Decimal("0.00"),
        )

    def last_payment_date(self, *, school_id, student_id, term, year):
        dates = [t.transaction_date for t in self._transactions.completed_for(school_id, student_id, term, year)]
        return max(dates, default=None)

    def upsert_account(self, *, school_id, student_id, term, year, **totals):
        key = (int(school_id), int(student_id), int(term), int(year))
        self.accounts[key] = StudentAccount(school_id=key[0], student_id=key[1], term=key[2], year=key[3], **totals)

    def get_account(self, *, school_id, student_id, term, year):
        return self.accounts.get((int(school_id), int(student_id), int(term), int(year)))

    def list_accounts_for_student(self, *, school_id, student_id):
        return [a for k, a in self.accounts.items() if k[0] == int(school_id) and k[1] == int(student_id)]


class FakePaymentMethods:
    def __init__(self):
        self.methods: dict[int, PaymentMethod] = {}

    def create_method(self, *, school_id, name, description):
        if any(m.school_id == school_id and m.name.lower() == name.lower() for m in self.methods.values()):
            raise ConflictError("Payment method already exists")
        method_id = len(self.methods) + 1
        self.methods[method_id] = PaymentMethod(
            payment_method_id=method_id, school_id=school_id, name=name, description=description
        )
        return method_id

    def get_by_id(self, *, school_id, payment_method_id):
        m = self.methods.get(int(payment_method_id))
        return m if m and m.school_id == int(school_id) else None

    def list_for_school(self, *, school_id, active_only=True):
        return [m for m in self.methods.values() if m.school_id == int(school_id) and (m.is_active or not active_only)]


class FakeBursaries:
    def __init__(self):
        self.bursaries: dict[int, Bursary] = {}
        self.adjustments = []

    def create_bursary(self, *, school_id, **fields):
        bursary_id = len(self.bursaries) + 1
        self.bursaries[bursary_id] = Bursary(bursary_id=bursary_id, school_id=school_id, **fields)
        return bursary_id

    def get_by_id(self, *, school_id, bursary_id):
        b = self.bursaries.get(int(bursary_id))
        return b if b and b.school_id == int(school_id) else None

    def set_decision(self, *, school_id, bursary_id, status, decided_by, decided_at, rejection_reason=None):
        b = self.get_by_id(school_id=school_id, bursary_id=bursary_id)
        if not b or b.status != BursaryStatus.PENDING:
            return False
        if status == BursaryStatus.APPROVED:
            b = replace(b, status=status, approved_by=decided_by, approved_at=decided_at)
        else:
            b = replace(b, status=status, rejected_by=decided_by, rejected_at=decided_at, rejection_reason=rejection_reason)
        self.bursaries[b.bursary_id] = b
        return True

    def add_adjustment(self, adjustment):
        self.adjustments.append(adjustment)
        return len(self.adjustments)

    def list_adjustments(self, *, bursary_id):
        return [a for a in self.adjustments if a.bursary_id == int(bursary_id)]

    def _filtered(self, school_id, student_id=None, status=None, term=None, year=None):
        rows = [b for b in self.bursaries.values() if b.school_id == int(school_id)]
        if student_id:
            rows = [b for b in rows if b.student_id == student_id]
        if status:
            rows = [b for b in rows if b.status == status]
        if term:
            rows = [b for b in rows if b.term == term]
        if year:
            rows = [b for b in rows if b.year == year]
        return rows

    def search(self, *, school_id, limit=50, offset=0, **filters):
        return self._filtered(school_id, **filters)[offset : offset + limit]

    def count(self, *, school_id, **filters):
        return len(self._filtered(school_id, **filters))

    def stats(self, *, school_id, term=None, year=None):
        rows = self._filtered(school_id, term=term, year=year)
        ids = {b.bursary_id for b in rows}
        return {
            "total": len(rows),
            "pending": sum(1 for b in rows if b.status == BursaryStatus.PENDING),
            "approved": sum(1 for b in rows if b.status == BursaryStatus.APPROVED),
            "rejected": sum(1 for b in rows if b.status == BursaryStatus.REJECTED),
            "full_sponsorships": sum(1 for b in rows if b.bursary_type.value == "full_sponsorship"),
            "total_waived": sum((a.adjustment_amount for a in self.adjustments if a.bursary_id in ids), Decimal("0")),
        }


class FakeDocuments:
    def __init__(self):
        self.receipts: dict[int, Receipt] = {}
        self.invoices: dict[int, Invoice] = {}

    def get_receipt_by_transaction(self, *, school_id, transaction_id):
        return next(
            (r for r in self.receipts.values() if r.school_id == int(school_id) and r.transaction_id == int(transaction_id)),
            None,
        )

    def get_receipt_by_number(self, *, school_id, receipt_number):
        return next(
            (r for r in self.receipts.values() if r.school_id == int(school_id) and r.receipt_number == receipt_number),
            None,
        )

    def find_receipt(self, receipt_number):
        return next((r for r in self.receipts.values() if r.receipt_number == receipt_number), None)

    def create_receipt(self, *, school_id, transaction_id, **fields):
        if self.get_receipt_by_transaction(school_id=school_id, transaction_id=transaction_id):
            raise ConflictError("Duplicate receipt")
        receipt_id = len(self.receipts) + 1
        self.receipts[receipt_id] = Receipt(
            receipt_id=receipt_id, school_id=school_id, transaction_id=transaction_id, **fields
        )
        return receipt_id

    def list_receipts(self, *, school_id, student_id=None, limit=100):
        rows = [r for r in self.receipts.values() if r.school_id == int(school_id)]
        if student_id:
            rows = [r for r in rows if r.student_id == int(student_id)]
        return rows[:limit]

    def create_invoice(self, *, school_id, **fields):
        invoice_id = len(self.invoices) + 1
        self.invoices[invoice_id] = Invoice(invoice_id=invoice_id, school_id=school_id, **fields)
        return invoice_id

    def get_invoice(self, *, school_id, invoice_number):
        return next(
            (i for i in self.invoices.values() if i.school_id == int(school_id) and i.invoice_number == invoice_number),
            None,
        )


class FakeOnboarding:
    def __init__(self):
        self.steps: dict[tuple[int, str], StepRecord] = {}

    def ensure_steps(self, user_id, steps):
        added = 0
        for step in steps:
            if (int(user_id), step.value) not in self.steps:
                self.steps[(int(user_id), step.value)] = StepRecord(user_id=int(user_id), step=step)
                added += 1
        return added

    def list_steps(self, user_id):
        rows = [r for (uid, _), r in self.steps.items() if uid == int(user_id)]
        return sorted(rows, key=lambda r: r.step.order)

    def update_step(self, user_id, *, step, status, step_data, at):
        current = self.steps[(int(user_id), step.value)]
        self.steps[(int(user_id), step.value)] = replace(
            current,
            status=status,
            step_data=step_data if step_data is not None else current.step_data,
            started_at=current.started_at or at,
            completed_at=at if status == StepStatus.COMPLETED else None,
        )
        return True


class FakeTrials:
    def __init__(self):
        self.trials: dict[int, UserTrial] = {}

    def add(self, trial: UserTrial) -> UserTrial:
        self.trials[trial.trial_id] = trial
        return trial

    def _for_user(self, user_id):
        return sorted((t for t in self.trials.values() if t.user_id == int(user_id)), key=lambda t: t.trial_id)

    def get_active(self, user_id):
        active = [t for t in self._for_user(user_id) if t.status == TrialStatus.ACTIVE]
        return active[-1] if active else None

    def get_latest(self, user_id):
        rows = self._for_user(user_id)
        return rows[-1] if rows else None

    def create_trial(self, *, user_id, start_date, end_date):
        trial_id = len(self.trials) + 1
        self.trials[trial_id] = UserTrial(
            trial_id=trial_id, user_id=user_id, start_date=start_date, end_date=end_date, created_at=start_date
        )
        return trial_id

    def set_status(self, trial_id, *, status):
        self.trials[int(trial_id)] = replace(self.trials[int(trial_id)], status=status)
        return True

    def set_end_date(self, trial_id, *, end_date):
        self.trials[int(trial_id)] = replace(self.trials[int(trial_id)], end_date=end_date)
        return True

    def expire_due(self, *, now):
        due = [t for t in self.trials.values() if t.status == TrialStatus.ACTIVE and t.end_date <= now]
        for t in due:
            self.trials[t.trial_id] = replace(t, status=TrialStatus.EXPIRED)
        return len(due)


def make_plans() -> dict[int, PaymentPlan]:
    return {
        1: PaymentPlan(
            plan_id=1,
            plan_code="trial",
            plan_name="Free Trial",
            price_monthly=Decimal("0"),
            price_yearly=Decimal("0"),
            trial_period_days=30,
            is_trial=True,
        ),
        2: PaymentPlan(
            plan_id=2,
            plan_code="basic",
            plan_name="Basic",
            price_monthly=Decimal("150000"),
            price_yearly=Decimal("1500000"),
            sort_order=1,
        ),
        3: PaymentPlan(
            plan_id=3,
            plan_code="premium",
            plan_name="Premium",
            price_monthly=Decimal("500000"),
            price_yearly=Decimal("5000000"),
            sort_order=3,
        ),
    }


class FakePlans:
    def __init__(self, plans: Optional[dict[int, PaymentPlan]] = None):
        self.plans = make_plans() if plans is None else plans

    def list_plans(self, *, active_only=True):
        return [p for p in self.plans.values() if p.is_active or not active_only]

    def get_plan(self, plan_id):
        return self.plans.get(int(plan_id))

    def get_plan_by_code(self, plan_code):
        return next((p for p in self.plans.values() if p.plan_code == plan_code), None)


class FakeSubscriptions:
    def __init__(self, plans: Optional[FakePlans] = None):
        self.rows: dict[int, Subscription] = {}
        self._plans = plans or FakePlans()

    def get_by_id(self, subscription_id):
        return self.rows.get(int(subscription_id))

    def get_latest(self, user_id):
        rows = [
            s
            for s in self.rows.values()
            if s.user_id == int(user_id) and s.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)
        ]
        return max(rows, key=lambda s: s.subscription_id) if rows else None

    def has_active(self, user_id, *, now, paid_only=False):
        statuses = (SubscriptionStatus.ACTIVE,) if paid_only else (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)
        return any(s.user_id == int(user_id) and s.status in statuses and s.end_date > now for s in self.rows.values())

    def create_subscription(self, *, plan_id, **fields):
        subscription_id = len(self.rows) + 1
        plan = self._plans.get_plan(plan_id)
        self.rows[subscription_id] = Subscription(
            subscription_id=subscription_id,
            plan_id=plan_id,
            plan_code=plan.plan_code if plan else None,
            plan_name=plan.plan_name if plan else None,
            **fields,
        )
        return subscription_id

    def set_status(self, subscription_id, *, status):
        s = self.rows[int(subscription_id)]
        changes = {"status": status}
        if status == SubscriptionStatus.CANCELLED:
            changes["auto_renew"] = False
        self.rows[int(subscription_id)] = replace(s, **changes)
        return True

    def close_trial_rows(self, user_id, *, status):
        count = 0
        for s in list(self.rows.values()):
            if s.user_id == int(user_id) and s.status == SubscriptionStatus.TRIAL:
                self.rows[s.subscription_id] = replace(s, status=status)
                count += 1
        return count

    def set_end_date(self, subscription_id, *, end_date):
        self.rows[int(subscription_id)] = replace(self.rows[int(subscription_id)], end_date=end_date)
        return True

    def record_payment(self, subscription_id, *, payment_method, transaction_ref, paid_at):
        self.rows[int(subscription_id)] = replace(
            self.rows[int(subscription_id)],
            status=SubscriptionStatus.ACTIVE,
            payment_method=payment_method,
            transaction_ref=transaction_ref,
            paid_at=paid_at,
        )
        return True

    def expire_due(self, *, now):
        due = [
            s
            for s in self.rows.values()
            if s.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE) and s.end_date <= now
        ]
        for s in due:
            self.rows[s.subscription_id] = replace(s, status=SubscriptionStatus.EXPIRED)
        return len(due)


def make_user(user_id=1, *, school_id=1, role=Role.ADMIN, password="secret123", onboarded=True, **extra) -> User:
    from werkzeug.security import generate_password_hash

    return User(
        user_id=user_id,
        school_id=school_id,
        username=extra.pop("username", f"user{user_id}"),
        email=extra.pop("email", f"user{user_id}@school.test"),
        full_name=extra.pop("full_name", f"User {user_id}"),
        password_hash=generate_password_hash(password),
        role=role,
        status=extra.pop("status", UserStatus.ACTIVE),
        onboarding_completed=onboarded,
        **extra,
    )


__all__ = [
    "BillingCycle",
    "FakeAccounts",
    "FakeAudit",
    "FakeBursaries",
    "FakeClasses",
    "FakeDocuments",
    "FakeFees",
    "FakeOnboarding",
    "FakePaymentMethods",
    "FakePlans",
    "FakeSchools",
    "FakeSessions",
    "FakeStudents",
    "FakeSubscriptions",
    "FakeTransactions",
    "FakeTrials",
    "FakeUsers",
    "FeeAppliesTo",
    "FeeStatus",
    "make_plans",
    "make_user",
]
