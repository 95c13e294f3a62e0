# backend/parking_app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Storage backend: "sql" (default), "json" (original file layout) or "memory"
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")

    # SQLite DB stored in backend/instance/parking.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///parking.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JSON-file backend directory (vouchers.json, usages.jsonl, logs.jsonl)
    DATA_DIR = os.environ.get("DATA_DIR", "data")

    # Single admin account. Prefer ADMIN_PASSWORD_HASH (bcrypt) outside development.
    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "qzadmin")
    ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "Qzkj@2026#")
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Admin sessions live in process memory only
    SESSION_COOKIE_NAME_ADMIN = "pc_admin_session"
    SESSION_TTL_SECONDS = int(os.environ.get("SESSION_TTL_SECONDS", str(8 * 60 * 60)))
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE")

    # Login rate limit, keyed by client IP
    LOGIN_MAX_ATTEMPTS = 5
    LOGIN_WINDOW_SECONDS = 15 * 60

    # Shared secret for the property-management webhook; webhook is off while unset
    WEBHOOK_SECRET = os.environ.get("WEBHOOK_SECRET")

    # Honour X-Forwarded-For from one reverse proxy hop (client IP for rate limiting and audit)
    TRUST_PROXY = _env_bool("TRUST_PROXY")

    MAX_PAGE_SIZE = 100
    NOTE_MAX_LENGTH = 200
    QR_MAX_BYTES = 2 * 1024 * 1024

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
