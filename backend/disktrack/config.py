# backend/disktrack/config.py
from __future__ import annotations
import os


def _csv_env(name: str, default: str, *, lower: bool = False) -> list[str]:
    values = [v.strip() for v in os.environ.get(name, default).split(",")]
    values = [v for v in values if v]
    return [v.lower() for v in values] if lower else values


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/disktrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///disktrack.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every store call must give up eventually; surfaced as InternalError.
    DB_TIMEOUT_SECONDS = int(os.environ.get("DB_TIMEOUT_SECONDS", "10"))

    # Inventory vocabulary
    PRODUCT_TYPE = os.environ.get("PRODUCT_TYPE", "Disk")
    TYPE_CAPACITIES = _csv_env("TYPE_CAPACITIES", "320,512,1024")
    SUPPORTED_PLATFORMS = _csv_env(
        "SUPPORTED_PLATFORMS",
        "amazon,flipkart,myntra,snapdeal,paytm,offline,other",
        lower=True,
    )
    # Placeholder capacity for units first seen through a public registration
    DEFAULT_CAPACITY = os.environ.get("DEFAULT_CAPACITY", "512")

    # Warranty
    DEFAULT_WARRANTY_MONTHS = int(os.environ.get("DEFAULT_WARRANTY_MONTHS", "12"))
    MAX_WARRANTY_MONTHS = int(os.environ.get("MAX_WARRANTY_MONTHS", "60"))

    # Public endpoint throttling (per caller address, fixed window)
    RATE_LIMIT_WINDOW_MINUTES = int(os.environ.get("RATE_LIMIT_WINDOW_MINUTES", "15"))
    RATE_LIMIT_MAX_ATTEMPTS = int(os.environ.get("RATE_LIMIT_MAX_ATTEMPTS", "10"))
    RATE_LIMIT_BACKEND = os.environ.get("RATE_LIMIT_BACKEND", "sql")  # sql | memory

    # Bill uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads"))
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    ALLOWED_BILL_EXTENSIONS = set(_csv_env("ALLOWED_BILL_EXTENSIONS", "pdf,jpg,jpeg,png,webp", lower=True))

    # Identity recorded when an action has no authenticated actor
    SYSTEM_ACTOR = os.environ.get("SYSTEM_ACTOR", "system")

    # Row cap for the return/inquiry windows read by the dashboard
    ANALYTICS_WINDOW = int(os.environ.get("ANALYTICS_WINDOW", "1000"))
    # Upper bound on filtered units read in one dashboard pass
    ANALYTICS_UNIT_LIMIT = int(os.environ.get("ANALYTICS_UNIT_LIMIT", "20000"))

    CORS_ORIGINS = set(_csv_env(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ))

    # Used by `flask system init`
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
