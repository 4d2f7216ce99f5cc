# backend/palletrack/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///palletrack.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "unbounded": a parent is unbounded if any leaf below it is uncapped
    # "capped_only": sum capped leaves, uncapped leaves contribute nothing
    CAPACITY_ROLLUP_POLICY = os.environ.get("CAPACITY_ROLLUP_POLICY", "unbounded")

    # Analytics windows (days)
    STOCK_HISTORY_DAYS = _env_int("STOCK_HISTORY_DAYS", 30)
    ACTIVITY_WINDOW_DAYS = _env_int("ACTIVITY_WINDOW_DAYS", 7)
    TOP_MOVERS_WINDOW_DAYS = _env_int("TOP_MOVERS_WINDOW_DAYS", 7)
    TOP_MOVERS_LIMIT = _env_int("TOP_MOVERS_LIMIT", 5)

    # Sessions
    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 12)

    # bcrypt cost factor for PIN hashes
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # PIN login throttling
    MAX_FAILED_PIN_ATTEMPTS = _env_int("MAX_FAILED_PIN_ATTEMPTS", 10)
    PIN_LOCKOUT_WINDOW_MINUTES = _env_int("PIN_LOCKOUT_WINDOW_MINUTES", 15)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
