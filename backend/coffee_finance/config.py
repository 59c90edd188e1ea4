# backend/coffee_finance/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/coffee_finance.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///coffee_finance.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Name of the materialized cash balance row
    CASH_ACCOUNT = os.environ.get("CASH_ACCOUNT", "MAIN")

    # Payment transaction retry on lock/version conflicts
    PAYMENT_RETRY_ATTEMPTS = int(os.environ.get("PAYMENT_RETRY_ATTEMPTS", "5"))
    PAYMENT_RETRY_BACKOFF = float(os.environ.get("PAYMENT_RETRY_BACKOFF", "0.05"))

    # Post-commit follow-ups (assessment status, day book, SMS)
    FOLLOW_UP_MAX_ATTEMPTS = int(os.environ.get("FOLLOW_UP_MAX_ATTEMPTS", "5"))

    # Notifications. SMS_GATEWAY may be set to an object with send(); None logs only.
    SMS_ENABLED = _env_bool("SMS_ENABLED", True)
    SMS_GATEWAY = None

    # Arabica auto-reject thresholds (percent)
    ARABICA_MAX_ROBUSTA_PCT = float(os.environ.get("ARABICA_MAX_ROBUSTA_PCT", "3"))
    ARABICA_MAX_GROUP1_PCT = float(os.environ.get("ARABICA_MAX_GROUP1_PCT", "12"))
