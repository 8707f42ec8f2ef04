from __future__ import annotations

from dataclasses import dataclass

from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.service import AuditService
from .bursaries.calculator.factory import BursaryCalculatorFactory
from .bursaries.mysql_bursary_repository import MySQLBursaryRepository
from .bursaries.service import BursaryService
from .core.constants import DEFAULT_SESSION_DAYS, DEFAULT_SESSION_INACTIVITY_DAYS, DEFAULT_TRIAL_DAYS
from .database.connection import DBConfig, DatabaseConnection
from .finance.accounts import StudentAccountService
from .finance.mysql_account_repository import MySQLAccountRepository
from .finance.mysql_fee_repository import MySQLFeeRepository
from .finance.mysql_payment_method_repository import MySQLPaymentMethodRepository
from .finance.service import FeeService
from .onboarding.access import AccessService
from .onboarding.mysql_onboarding_repository import MySQLOnboardingRepository
from .onboarding.service import OnboardingService
from .payments.mysql_transaction_repository import MySQLTransactionRepository
from .payments.service import PaymentService
from .predictions.mysql_prediction_repository import MySQLPredictionRepository
from .predictions.service import PredictionService
from .receipts.mysql_document_repository import MySQLDocumentRepository
from .receipts.service import DocumentService
from .reports.mysql_report_repository import MySQLReportRepository
from .reports.service import FinancialReportService
from .schools.mysql_school_repository import MySQLSchoolRepository
from .schools.service import SchoolService
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.service import SessionService
from .students.mysql_class_repository import MySQLClassRepository
from .students.mysql_student_repository import MySQLStudentRepository
from .students.service import StudentService
from .subscriptions.mysql_subscription_repository import MySQLPlanRepository, MySQLSubscriptionRepository
from .subscriptions.service import SubscriptionService
from .trials.mysql_trial_repository import MySQLTrialRepository
from .trials.service import TrialService
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    auth_service: AuthService
    user_service: UserService
    session_service: SessionService
    audit_service: AuditService
    school_service: SchoolService
    student_service: StudentService
    account_service: StudentAccountService
    fee_service: FeeService
    payment_service: PaymentService
    bursary_service: BursaryService
    document_service: DocumentService
    onboarding_service: OnboardingService
    access_service: AccessService
    trial_service: TrialService
    subscription_service: SubscriptionService
    report_service: FinancialReportService
    prediction_service: PredictionService
    conn: DatabaseConnection | None = None


def build_container(
    *,
    db_config: dict,
    session_days: int = DEFAULT_SESSION_DAYS,
    session_inactivity_days: int = DEFAULT_SESSION_INACTIVITY_DAYS,
    trial_days: int = DEFAULT_TRIAL_DAYS,
    receipt_verify_url: str = "",
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)
    transaction = conn.transaction

    users_repo = MySQLUserRepository(conn)
    sessions_repo = MySQLSessionRepository(conn)
    audit_repo = MySQLAuditRepository(conn)
    schools_repo = MySQLSchoolRepository(conn)
    students_repo = MySQLStudentRepository(conn)
    classes_repo = MySQLClassRepository(conn)
    fees_repo = MySQLFeeRepository(conn)
    accounts_repo = MySQLAccountRepository(conn)
    methods_repo = MySQLPaymentMethodRepository(conn)
    transactions_repo = MySQLTransactionRepository(conn)
    bursaries_repo = MySQLBursaryRepository(conn)
    documents_repo = MySQLDocumentRepository(conn)
    onboarding_repo = MySQLOnboardingRepository(conn)
    trials_repo = MySQLTrialRepository(conn)
    plans_repo = MySQLPlanRepository(conn)
    subscriptions_repo = MySQLSubscriptionRepository(conn)
    reports_repo = MySQLReportRepository(conn)
    predictions_repo = MySQLPredictionRepository(conn)

    audit_service = AuditService(audit_repo)
    session_service = SessionService(
        sessions_repo,
        users_repo,
        session_days=session_days,
        inactivity_days=session_inactivity_days,
    )
    account_service = StudentAccountService(accounts_repo)
    document_service = DocumentService(
        documents_repo,
        transactions_repo,
        students_repo,
        schools_repo,
        fees_repo,
        account_service,
        verify_url=receipt_verify_url,
    )
    onboarding_service = OnboardingService(onboarding_repo, users_repo, transaction=transaction)
    trial_service = TrialService(
        trials_repo, plans_repo, subscriptions_repo, transaction=transaction, default_days=trial_days
    )

    return Container(
        conn=conn,
        auth_service=AuthService(users_repo, session_service, audit_service),
        user_service=UserService(users_repo, session_service, audit_service),
        session_service=session_service,
        audit_service=audit_service,
        school_service=SchoolService(schools_repo, users_repo, audit_service, transaction=transaction),
        student_service=StudentService(students_repo, classes_repo, audit_service, transaction=transaction),
        account_service=account_service,
        fee_service=FeeService(
            fees_repo, students_repo, classes_repo, account_service, methods_repo, transaction=transaction
        ),
        payment_service=PaymentService(
            transactions_repo,
            fees_repo,
            students_repo,
            methods_repo,
            account_service,
            audit_service,
            documents=document_service,
            transaction=transaction,
        ),
        bursary_service=BursaryService(
            bursaries_repo,
            fees_repo,
            students_repo,
            account_service,
            audit_service,
            transaction=transaction,
            factory=BursaryCalculatorFactory(),
        ),
        document_service=document_service,
        onboarding_service=onboarding_service,
        access_service=AccessService(onboarding_service, trial_service, subscriptions_repo),
        trial_service=trial_service,
        subscription_service=SubscriptionService(
            plans_repo, subscriptions_repo, audit_service, transaction=transaction, default_trial_days=trial_days
        ),
        report_service=FinancialReportService(reports_repo),
        prediction_service=PredictionService(predictions_repo),
    )
