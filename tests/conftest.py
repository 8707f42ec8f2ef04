from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pytest

from fakes import (
    FakeAccounts,
    FakeAudit,
    FakeBursaries,
    FakeClasses,
    FakeDocuments,
    FakeFees,
    FakeOnboarding,
    FakePaymentMethods,
    FakePlans,
    FakeSchools,
    FakeSessions,
    FakeStudents,
    FakeSubscriptions,
    FakeTransactions,
    FakeTrials,
    FakeUsers,
)
from src.school_management.school_management.audit.service import AuditService
from src.school_management.school_management.bursaries.service import BursaryService
from src.school_management.school_management.finance.accounts import StudentAccountService
from src.school_management.school_management.finance.service import FeeService
from src.school_management.school_management.onboarding.access import AccessService
from src.school_management.school_management.onboarding.service import OnboardingService
from src.school_management.school_management.payments.service import PaymentService
from src.school_management.school_management.receipts.service import DocumentService
from src.school_management.school_management.schools.model import School
from src.school_management.school_management.schools.service import SchoolService
from src.school_management.school_management.sessions.service import SessionService
from src.school_management.school_management.students.service import StudentService
from src.school_management.school_management.subscriptions.service import SubscriptionService
from src.school_management.school_management.trials.service import TrialService
from src.school_management.school_management.users.service import AuthService, UserService


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 10, 9, 0, 0)


@dataclass
class World:
    users: FakeUsers
    sessions: FakeSessions
    audit: FakeAudit
    schools: FakeSchools
    classes: FakeClasses
    students: FakeStudents
    transactions: FakeTransactions
    fees: FakeFees
    accounts: FakeAccounts
    methods: FakePaymentMethods
    bursaries: FakeBursaries
    documents: FakeDocuments
    onboarding: FakeOnboarding
    trials: FakeTrials
    plans: FakePlans
    subscriptions: FakeSubscriptions

    audit_service: AuditService
    session_service: SessionService
    auth_service: AuthService
    user_service: UserService
    school_service: SchoolService
    student_service: StudentService
    account_service: StudentAccountService
    fee_service: FeeService
    document_service: DocumentService
    payment_service: PaymentService
    bursary_service: BursaryService
    onboarding_service: OnboardingService
    trial_service: TrialService
    subscription_service: SubscriptionService
    access_service: AccessService


@pytest.fixture
def world() -> World:
    users = FakeUsers()
    sessions = FakeSessions()
    audit = FakeAudit()
    schools = FakeSchools()
    schools.schools[1] = School(
        school_id=1,
        name="Hillside Secondary",
        school_code="hillside-AB12CD",
        school_type="secondary",
        currency="UGX",
        timezone="Africa/Kampala",
        phone="+256700000001",
    )
    classes = FakeClasses()
    students = FakeStudents(classes)
    transactions = FakeTransactions(students)
    fees = FakeFees(transactions, students)
    accounts = FakeAccounts(fees, transactions)
    methods = FakePaymentMethods()
    bursaries = FakeBursaries()
    documents = FakeDocuments()
    onboarding = FakeOnboarding()
    trials = FakeTrials()
    plans = FakePlans()
    subscriptions = FakeSubscriptions(plans)

    audit_service = AuditService(audit)
    session_service = SessionService(sessions, users, session_days=30, inactivity_days=7)
    account_service = StudentAccountService(accounts)
    document_service = DocumentService(
        documents,
        transactions,
        students,
        schools,
        fees,
        account_service,
        verify_url="https://schools.test/verify",
    )
    onboarding_service = OnboardingService(onboarding, users)
    trial_service = TrialService(trials, plans, subscriptions, default_days=30)

    return World(
        users=users,
        sessions=sessions,
        audit=audit,
        schools=schools,
        classes=classes,
        students=students,
        transactions=transactions,
        fees=fees,
        accounts=accounts,
        methods=methods,
        bursaries=bursaries,
        documents=documents,
        onboarding=onboarding,
        trials=trials,
        plans=plans,
        subscriptions=subscriptions,
        audit_service=audit_service,
        session_service=session_service,
        auth_service=AuthService(users, session_service, audit_service),
        user_service=UserService(users, session_service, audit_service),
        school_service=SchoolService(schools, users, audit_service, suffix_factory=lambda: "XYZ123"),
        student_service=StudentService(students, classes, audit_service),
        account_service=account_service,
        fee_service=FeeService(fees, students, classes, account_service, methods),
        document_service=document_service,
        payment_service=PaymentService(
            transactions, fees, students, methods, account_service, audit_service, documents=document_service
        ),
        bursary_service=BursaryService(bursaries, fees, students, account_service, audit_service),
        onboarding_service=onboarding_service,
        trial_service=trial_service,
        subscription_service=SubscriptionService(plans, subscriptions, audit_service, default_trial_days=30),
        access_service=AccessService(onboarding_service, trial_service, subscriptions),
    )


@pytest.fixture
def admit(world, fixed_now):
    """Admit a student into school 1 and return it."""

    def _admit(first_name="Amina", last_name="Nakato", date_of_birth="2012-04-01", **extra):
        payload = {"first_name": first_name, "last_name": last_name, "date_of_birth": date_of_birth, "gender": "F"}
        payload.update(extra)
        return world.student_service.admit_student(school_id=1, payload=payload, created_by=1, now=fixed_now)

    return _admit
