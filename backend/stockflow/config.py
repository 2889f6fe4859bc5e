# backend/stockflow/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend dev servers allowed to call the API
    CORS_ALLOWED_ORIGINS = _split_csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))

    PAGINATION_DEFAULT_LIMIT = int(os.environ.get("PAGINATION_DEFAULT_LIMIT", "10"))
    NOTIFICATIONS_RECENT_MAX = int(os.environ.get("NOTIFICATIONS_RECENT_MAX", "20"))
