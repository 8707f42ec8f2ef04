from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for permission checks."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    BURSAR = "bursar"
    TEACHER = "teacher"
    STAFF = "staff"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    LEFT = "left"
    GRADUATED = "graduated"


class FeeAppliesTo(str, Enum):
    ALL = "all"
    CLASS = "class"
    LEVEL = "level"


class FeeStatus(str, Enum):
    """Payment state of a single fee allocation."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class AllocationTarget(str, Enum):
    ALL = "all"
    CLASS = "class"
    STREAM = "stream"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    REVERSED = "reversed"


class BursaryType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FULL_SPONSORSHIP = "full_sponsorship"


class BursaryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OnboardingStep(str, Enum):
    """Onboarding steps in the order a new school owner goes through them."""

    SCHOOL_SETUP = "school_setup"
    ADMIN_PROFILE = "admin_profile"
    PAYMENT_PLAN = "payment_plan"
    REVIEW_CONFIRM = "review_confirm"

    @property
    def order(self) -> int:
        return list(OnboardingStep).index(self) + 1


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TrialStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CONVERTED = "converted"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class BillingCycle(str, Enum):
    TRIAL = "trial"
    MONTHLY = "monthly"
    YEARLY = "yearly"
