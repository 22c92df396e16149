# backend/kgl/config.py
from __future__ import annotations
import os


def _csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kgl.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kgl.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Writers wait this long for the SQLite write lock before failing
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"timeout": float(os.environ.get("KGL_SQLITE_BUSY_TIMEOUT", "15"))},
    } if os.environ.get("DATABASE_URL", "sqlite").startswith("sqlite") else {}

    CORS_ORIGINS = _csv(os.environ.get(
        "KGL_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:5500,http://127.0.0.1:5500",
    ))

    # bcrypt work factor for new password hashes
    BCRYPT_ROUNDS = int(os.environ.get("KGL_BCRYPT_ROUNDS", "12"))

    SESSION_HOURS = int(os.environ.get("KGL_SESSION_HOURS", "12"))
    SESSION_IDLE_MINUTES = int(os.environ.get("KGL_SESSION_IDLE_MINUTES", "120"))

    CURRENCY = os.environ.get("KGL_CURRENCY", "UGX")
    DEFAULT_MINIMUM_STOCK = int(os.environ.get("KGL_DEFAULT_MINIMUM_STOCK", "10"))

    LOG_LEVEL = os.environ.get("KGL_LOG_LEVEL", "INFO")
