# backend/pharmapos/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale transaction retry on lock contention
    SALE_RETRY_ATTEMPTS = _int_env("SALE_RETRY_ATTEMPTS", 3)
    SALE_RETRY_BACKOFF = float(os.environ.get("SALE_RETRY_BACKOFF", "0.1"))

    SESSION_ABSOLUTE_TIMEOUT_HOURS = _int_env("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _int_env("SESSION_IDLE_TIMEOUT_HOURS", 2)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
