"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

SESSION_COOKIE_NAME = "session_token"
DEFAULT_SESSION_DAYS = 30
DEFAULT_SESSION_INACTIVITY_DAYS = 7

MIN_PASSWORD_LENGTH = 8

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

DEFAULT_CURRENCY = "UGX"
DEFAULT_TIMEZONE = "Africa/Kampala"
DEFAULT_SCHOOL_TYPE = "secondary"
SCHOOL_CODE_SLUG_LENGTH = 10
SCHOOL_CODE_SUFFIX_LENGTH = 6
SCHOOL_CODE_MAX_ATTEMPTS = 10

TERMS = (1, 2, 3)

TRIAL_PLAN_CODE = "trial"
DEFAULT_TRIAL_DAYS = 30
DEFAULT_TRIAL_EXTENSION_DAYS = 7
MONTHLY_PLAN_DAYS = 30
YEARLY_PLAN_DAYS = 365


# Predictions
TERM_LENGTH_DAYS = 90
DEFAULT_PAYMENT_INTERVAL_DAYS = 30
HIGH_RISK_PAYMENT_RATE = 30
MAX_HIGH_RISK_STUDENTS = 20
UNUSUAL_PAYMENT_BASELINE_DAYS = 30
TERM_START_MONTHS = (1, 5, 9)
TERM_END_MONTHS = (4, 8, 12)
