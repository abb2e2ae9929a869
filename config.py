import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as sprechtag.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "sprechtag.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "sprechtag_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 30 minutes
    IDLE_TIMEOUT_SECONDS = 30 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Brute-force protection
    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_MINUTES = 5

    # Password policy for teacher/admin accounts
    PASSWORD_MIN_LEN = 8
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Frontend origins allowed to call the API with credentials
    CORS_ORIGINS = [
        o.strip() for o in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://localhost:5174,http://localhost:5175",
        ).split(",") if o.strip()
    ]

    # Public frontend URL (used in verification links)
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5173")

    # Event defaults (until an admin saves settings)
    EVENT_NAME = os.getenv("EVENT_NAME", "BKSB Elternsprechtag")
    EVENT_DATE = os.getenv("EVENT_DATE")  # YYYY-MM-DD

    # Verification links never expire unless set (hours)
    VERIFICATION_TOKEN_MAX_AGE_HOURS = int(os.getenv("VERIFICATION_TOKEN_MAX_AGE_HOURS", "0"))

    # Verified requests older than this are assigned to the earliest free slot
    REQUEST_AUTO_ASSIGN_HOURS = int(os.getenv("REQUEST_AUTO_ASSIGN_HOURS", "24"))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "no-reply@example.com")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
