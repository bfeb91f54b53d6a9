import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as seatledger.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "seatledger.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Stripe (checked at request time, never defaulted)
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_FULL = os.getenv("STRIPE_PRICE_FULL")
    STRIPE_PRICE_DEPOSIT = os.getenv("STRIPE_PRICE_DEPOSIT")
    SITE_URL = os.getenv("SITE_URL")

    # Duplicate checkout initiations inside this window share one Stripe session
    CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS = 10

    # Ledger transactions
    LEDGER_MAX_ATTEMPTS = int(os.getenv("LEDGER_MAX_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF_SECONDS = float(os.getenv("LEDGER_RETRY_BACKOFF_SECONDS", "0.2"))
    LEDGER_LOCK_TIMEOUT_MS = int(os.getenv("LEDGER_LOCK_TIMEOUT_MS", "5000"))

    # Admin auth: bcrypt hash of the admin password (see `flask hash-admin-password`)
    ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH")
    ADMIN_COOKIE_NAME = "seatledger_admin"

    # 24 hours session lifetime
    SESSION_LIFETIME_SECONDS = 24 * 60 * 60

    # Idle timeout: 60 minutes
    IDLE_TIMEOUT_SECONDS = 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Strict"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Fixed-window rate limits per IP, keyed by scope
    RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_WINDOW_SECONDS = 15 * 60
    RATE_LIMIT_DEFAULT_MAX = 5
    RATE_LIMITS = {
        "checkout": 5,
        "admin-login": 5,
        "sections": 60,
        "enrollment-status": 60,
    }

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
