import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "school_management"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Sessions (days)
SESSION_DAYS = int(os.getenv("SESSION_DAYS", "30"))
SESSION_INACTIVITY_DAYS = int(os.getenv("SESSION_INACTIVITY_DAYS", "7"))
SESSION_COOKIE_SECURE = False

DEFAULT_TRIAL_DAYS = int(os.getenv("DEFAULT_TRIAL_DAYS", "30"))

# Encoded into the QR code printed on receipts
RECEIPT_VERIFY_URL = os.getenv("RECEIPT_VERIFY_URL", "http://localhost:5000/verify/receipt")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed plans and demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
