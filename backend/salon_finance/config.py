# backend/salon_finance/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salon_finance.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///salon_finance.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "EGP")
    LOW_BALANCE_ALERTS_ENABLED = _env_bool("LOW_BALANCE_ALERTS_ENABLED", True)

    # Amounts are integer cents, so exact comparison is the default.
    RECONCILIATION_TOLERANCE_CENTS = int(os.environ.get("RECONCILIATION_TOLERANCE_CENTS", "0"))
    PAYMENT_TOLERANCE_CENTS = int(os.environ.get("PAYMENT_TOLERANCE_CENTS", "0"))

    # Attempts for an atomic unit that loses a write conflict
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
