# backend/omni/config.py
from __future__ import annotations
import os


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/omni.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///omni.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ))

    # Days before coverage end at which an approved warranty shows as ExpiringSoon
    WARRANTY_EXPIRING_SOON_DAYS = int(os.environ.get("WARRANTY_EXPIRING_SOON_DAYS", "30"))

    # allow | block_open | block_any (see warranty_service.check_duplicate_vin)
    WARRANTY_DUPLICATE_VIN_POLICY = os.environ.get("WARRANTY_DUPLICATE_VIN_POLICY", "allow")
