# backend/cartcode/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# Public placeholder; never accepted as a signing secret for staff codes.
DEV_SECRET_KEY = "dev-secret-key-change-me"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", DEV_SECRET_KEY)

    # SQLite DB stored in backend/instance/cartcode.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cartcode.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Keyed-hash secret for deterministic staff codes. Falls back to SECRET_KEY
    # only when that is set to something other than DEV_SECRET_KEY.
    STAFF_CODE_SECRET = os.environ.get("STAFF_CODE_SECRET")

    JOIN_CODE_TTL_MINUTES = _int_env("JOIN_CODE_TTL_MINUTES", 10)
    TRANSFER_CODE_TTL_MINUTES = _int_env("TRANSFER_CODE_TTL_MINUTES", 60)
    STAFF_CODE_WINDOW_MINUTES = _int_env("STAFF_CODE_WINDOW_MINUTES", 10)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
