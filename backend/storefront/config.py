# backend/storefront/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3 unless overridden
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///storefront.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared connection pool (ignored for SQLite, which uses its own pool class)
    DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "10"))
    DB_POOL_TIMEOUT = int(os.environ.get("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE = int(os.environ.get("DB_POOL_RECYCLE", "1800"))
    STATEMENT_TIMEOUT_MS = int(os.environ.get("STATEMENT_TIMEOUT_MS", "15000"))

    # Retry policy for lock waits / pool exhaustion
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF = float(os.environ.get("DB_RETRY_BACKOFF", "0.1"))

    # Bearer tokens issued by the identity provider
    JWT_SECRET = os.environ.get("JWT_SECRET", SECRET_KEY)
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", "720"))

    # Asset store (logo files, product images, customization previews)
    ASSET_ROOT = os.environ.get("ASSET_ROOT", "instance/assets")
    ASSET_BASE_URL = os.environ.get("ASSET_BASE_URL", "/assets")

    # Notifier: "log" (default) or "smtp"
    NOTIFIER_BACKEND = os.environ.get("NOTIFIER_BACKEND", "log")
    MAIL_HOST = os.environ.get("MAIL_HOST", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
    MAIL_USE_SSL = os.environ.get("MAIL_USE_SSL", "false").lower() == "true"
    MAIL_FROM = os.environ.get("MAIL_FROM", "orders@storefront.local")
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Storefront")

    # Browser origins allowed to call the API
    CORS_ORIGINS = tuple(
        o.strip() for o in os.environ.get(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",") if o.strip()
    )


def engine_options_for(config: dict) -> dict:
    """
    Build SQLALCHEMY_ENGINE_OPTIONS for the configured database.

    SQLite keeps Flask-SQLAlchemy's defaults (StaticPool for :memory:),
    every other backend gets a fixed-size QueuePool and a statement timeout.
    """
    uri = config.get("SQLALCHEMY_DATABASE_URI") or ""
    options = dict(config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    if uri.startswith("sqlite"):
        return options

    options.setdefault("pool_size", config.get("DB_POOL_SIZE", 10))
    options.setdefault("max_overflow", 0)
    options.setdefault("pool_timeout", config.get("DB_POOL_TIMEOUT", 30))
    options.setdefault("pool_recycle", config.get("DB_POOL_RECYCLE", 1800))
    options.setdefault("pool_pre_ping", True)

    timeout_ms = config.get("STATEMENT_TIMEOUT_MS")
    if timeout_ms and uri.startswith("postgresql"):
        connect_args = dict(options.get("connect_args") or {})
        connect_args.setdefault("options", f"-c statement_timeout={int(timeout_ms)}")
        options["connect_args"] = connect_args
    return options
