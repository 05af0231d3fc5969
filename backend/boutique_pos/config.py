# backend/boutique_pos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/boutique_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///boutique_pos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Comma-separated list of origins allowed to call the API from a browser
    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )

    # Sale policy (see services/sales_service.SalePolicy)
    TAX_RATE = os.environ.get("TAX_RATE", "0.16")
    LOYALTY_POINTS_PER = os.environ.get("LOYALTY_POINTS_PER", "100")
    ALLOW_UNDERPAYMENT = _env_flag("ALLOW_UNDERPAYMENT", True)
    CLAMP_NEGATIVE_TAXABLE = _env_flag("CLAMP_NEGATIVE_TAXABLE", False)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    BCRYPT_ROUNDS = 4
