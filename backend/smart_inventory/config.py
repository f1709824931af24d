# backend/smart_inventory/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/smart_inventory.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///smart_inventory.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Max wait for a row (or SQLite database) lock before Contention is raised
    LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5"))

    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))
    WRITE_RETRY_BACKOFF = float(os.environ.get("WRITE_RETRY_BACKOFF", "0.1"))

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    TOP_PRODUCTS_LIMIT = int(os.environ.get("TOP_PRODUCTS_LIMIT", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options(database_uri: str, lock_timeout: float) -> dict:
    """SQLite has no row locks; its busy timeout bounds the wait on the database write lock."""
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout}}
    return {}
