"""
Configuration for CertQuoteWeb.

Vendor credentials are optional at startup: the form and pricing work
without them, and each integration raises ConfigurationError on first use.
/health reports which ones are missing.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'cert_quote.db'}")
    # Heroku / Supabase style URLs; SQLAlchemy only accepts postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB uploads
    SESSION_COOKIE_NAME = "cert_quote_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ==========================================================================
    # Storage (Supabase)
    # ==========================================================================
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    ORDERS_BUCKET = os.environ.get("ORDERS_BUCKET", "orders")
    SIGNED_URL_TTL_SECONDS = _int_env("SIGNED_URL_TTL_SECONDS", 3600)
    PROCESSING_URL_TTL_SECONDS = _int_env("PROCESSING_URL_TTL_SECONDS", 60)

    # ==========================================================================
    # OCR and analysis
    # ==========================================================================
    # OCR_PROVIDER: vision (Google Vision), adobe (PDF Services), pdf_text (local)
    OCR_PROVIDER = os.environ.get("OCR_PROVIDER", "vision")
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    ADOBE_PDF_CLIENT_ID = os.environ.get("ADOBE_PDF_CLIENT_ID", "")
    ADOBE_PDF_CLIENT_SECRET = os.environ.get("ADOBE_PDF_CLIENT_SECRET", "")
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_MAX_INLINE_BYTES = _int_env("GEMINI_MAX_INLINE_BYTES", 20 * 1024 * 1024)

    # ==========================================================================
    # Payments and email
    # ==========================================================================
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = os.environ.get("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "usd")
    BREVO_API_KEY = os.environ.get("BREVO_API_KEY", "")
    BREVO_SENDER_EMAIL = os.environ.get("BREVO_SENDER_EMAIL", "")
    BREVO_SENDER_NAME = os.environ.get("BREVO_SENDER_NAME", "Certified Translations")

    # ==========================================================================
    # Pricing
    # ==========================================================================
    # billable pages = ceil(words x complexity / WORDS_PER_PAGE x 10) / 10
    # per page rate  = BASE_RATE x language tier multiplier
    PRICING_BASE_RATE = float(os.environ.get("PRICING_BASE_RATE", "65"))
    PRICING_WORDS_PER_PAGE = _int_env("PRICING_WORDS_PER_PAGE", 240)

    # ==========================================================================
    # Processing
    # ==========================================================================
    MAX_FILE_WORKERS = _int_env("MAX_FILE_WORKERS", 4)
    POLL_INTERVAL_MS = _int_env("POLL_INTERVAL_MS", 2000)
    VENDOR_TIMEOUT_SECONDS = _int_env("VENDOR_TIMEOUT_SECONDS", 60)


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration (in-memory SQLite shared across threads, no vendors)."""
    DEBUG = False
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
    SUPABASE_URL = ""
    SUPABASE_SERVICE_ROLE_KEY = ""
    OCR_PROVIDER = "pdf_text"
    GOOGLE_API_KEY = ""
    GEMINI_API_KEY = ""
    STRIPE_SECRET_KEY = ""
    STRIPE_WEBHOOK_SECRET = ""
    BREVO_API_KEY = ""
    BREVO_SENDER_EMAIL = ""


CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
