# backend/cafeteria/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Local store database (demo/standalone mode)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///cafeteria.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "local" keeps everything in the database above,
    # "remote" forwards every action to the external backend API.
    CAFETERIA_STORE = os.environ.get("CAFETERIA_STORE", "local")
    CAFETERIA_API_URL = os.environ.get("CAFETERIA_API_URL", "http://localhost:3001/api")
    CAFETERIA_API_TIMEOUT = float(os.environ.get("CAFETERIA_API_TIMEOUT", "30"))

    # Credit rules
    CREDIT_LIMIT_ENFORCED = _env_bool("CREDIT_LIMIT_ENFORCED", True)
    DEFAULT_CREDIT_LIMIT = os.environ.get("DEFAULT_CREDIT_LIMIT", "100.00")
    HISTORY_DEFAULT_LIMIT = int(os.environ.get("HISTORY_DEFAULT_LIMIT", "50"))

    # Where non-admin callers of admin actions are sent
    SAFE_DEFAULT_PATH = os.environ.get("SAFE_DEFAULT_PATH", "/api/dashboard")

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "S/")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Local session tokens
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_HOURS = int(os.environ.get("SESSION_IDLE_HOURS", "2"))

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }
