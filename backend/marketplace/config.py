# backend/marketplace/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key (also signs the cart cookie)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/makhil.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///makhil.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public site root used in email links and uploaded file URLs
    BASE_URL = os.environ.get("BASE_URL", "http://localhost:5000").rstrip("/")

    # Pricing (cents / whole percent)
    SHIPPING_FLAT_RATE_CENTS = int(os.environ.get("SHIPPING_FLAT_RATE_CENTS", "1000"))
    PLATFORM_FEE_PERCENTAGE = int(os.environ.get("PLATFORM_FEE_PERCENTAGE", "10"))

    # Out-of-band payment instructions shown at checkout
    ZELLE_EMAIL = os.environ.get("ZELLE_EMAIL", "payments@makhil.com")
    ZELLE_PHONE = os.environ.get("ZELLE_PHONE", "")

    # Email delivery (Resend HTTP API)
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@makhil.com")
    EMAIL_NOTIFICATIONS_ENABLED = _env_flag("EMAIL_NOTIFICATIONS_ENABLED", True)
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "MakHil <onboarding@resend.dev>")
    EMAIL_API_URL = os.environ.get("EMAIL_API_URL", "https://api.resend.com/emails")
    EMAIL_TIMEOUT_SECONDS = float(os.environ.get("EMAIL_TIMEOUT_SECONDS", "10"))

    # Blob storage for product photos and payment screenshots
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    # five product images plus form fields
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(MAX_UPLOAD_BYTES * 6)))

    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
