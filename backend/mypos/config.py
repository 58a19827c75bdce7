# backend/mypos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend as mypos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mypos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a writer waits on the SQLite lock before the operation fails
    LEDGER_DB_TIMEOUT_SECONDS = float(os.environ.get("LEDGER_DB_TIMEOUT_SECONDS", "15"))

    # Stock may go negative by default; availability checks are advisory
    LEDGER_ALLOW_NEGATIVE_STOCK = _env_flag("LEDGER_ALLOW_NEGATIVE_STOCK", True)

    # Reject returns that exceed what was sold on the original sale
    LEDGER_ENFORCE_RETURN_LIMITS = _env_flag("LEDGER_ENFORCE_RETURN_LIMITS", True)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LEDGER_ALLOW_NEGATIVE_STOCK = True
    LEDGER_ENFORCE_RETURN_LIMITS = True


def sqlite_engine_options(uri: str, timeout: float) -> dict:
    """Engine options for SQLite URIs; other backends keep driver defaults."""
    if not uri.startswith("sqlite"):
        return {}
    return {
        "connect_args": {
            "timeout": timeout,
            "check_same_thread": False,
        }
    }
