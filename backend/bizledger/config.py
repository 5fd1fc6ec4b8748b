# backend/bizledger/config.py
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

    # SQLite DB stored in backend/instance/bizledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bizledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Checkout of an empty cart produces a zero-value sale; off by default.
    ALLOW_EMPTY_CHECKOUT = _env_bool("ALLOW_EMPTY_CHECKOUT", False)

    # Candidate sale numbers drawn before giving up on a collision.
    REFERENCE_NUMBER_ATTEMPTS = int(os.environ.get("REFERENCE_NUMBER_ATTEMPTS", "5"))

    # Retries for lock/stale-data conflicts on write operations.
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
