import os


def _int_list(raw: str):
    return tuple(int(x) for x in raw.split(",") if x.strip())


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///library.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-super-secret")

    # Loan policy
    LOAN_PERIOD_DAYS = int(os.getenv("LOAN_PERIOD_DAYS", "14"))
    MAX_LOAN_PERIOD_DAYS = int(os.getenv("MAX_LOAN_PERIOD_DAYS", "60"))
    MAX_ACTIVE_LOANS = int(os.getenv("MAX_ACTIVE_LOANS", "3"))

    # Grace period / late fee policy
    GRACE_PERIOD_DAYS = int(os.getenv("GRACE_PERIOD_DAYS", "3"))
    BASE_LATE_FEE = os.getenv("BASE_LATE_FEE", "1.00")
    DAILY_LATE_FEE = os.getenv("DAILY_LATE_FEE", "0.50")
    MAX_LATE_FEE = os.getenv("MAX_LATE_FEE", "25.00")
    NOTIFICATION_OFFSETS = _int_list(os.getenv("NOTIFICATION_OFFSETS", "1,7,14,30"))
    AUTO_SUSPEND_DAYS = int(os.getenv("AUTO_SUSPEND_DAYS", "60"))

    # Borrow/return lock wait (seconds)
    LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))

    # Overdue sweep
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"
    OVERDUE_SCAN_MINUTES = int(os.getenv("OVERDUE_SCAN_MINUTES", "10"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    SCHEDULER_ENABLED = False
    LOCK_TIMEOUT_SECONDS = 2.0
