# backend/posapi/config.py
from __future__ import annotations
import os
from decimal import Decimal


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name) or default
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    APP_NAME = os.environ.get("APP_NAME", "POS API")
    APP_VERSION = os.environ.get("APP_VERSION", "2.0.0")

    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location (e.g. postgresql://...)
        "sqlite:///pos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for any single lock wait / statement; exceeded waits surface
    # as StorageUnavailableError after DB_RETRY_ATTEMPTS tries.
    DB_LOCK_TIMEOUT_SECONDS = float(os.environ.get("DB_LOCK_TIMEOUT_SECONDS", "5"))
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))

    # Checkout pricing
    TAX_RATE = Decimal(os.environ.get("TAX_RATE", "0.10"))

    # Loyalty bonus credited to the customer on every sale
    LOYALTY_POINTS_PER_SALE = int(os.environ.get("LOYALTY_POINTS_PER_SALE", "10"))
    LOYALTY_ASYNC = _env_bool("LOYALTY_ASYNC", True)

    # Auth
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options_for(uri: str, lock_timeout_seconds: float) -> dict:
    """
    Build SQLALCHEMY_ENGINE_OPTIONS so every storage call has a bounded wait.

    SQLite: busy timeout on the connection (BEGIN IMMEDIATE waits at most this long).
    PostgreSQL: statement_timeout and lock_timeout per connection.
    """
    timeout_ms = int(lock_timeout_seconds * 1000)

    if uri.startswith("sqlite"):
        return {
            "connect_args": {
                "timeout": lock_timeout_seconds,
                "check_same_thread": False,
            },
        }

    if uri.startswith("postgresql"):
        return {
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "connect_args": {
                "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
            },
        }

    return {"pool_pre_ping": True}
