# backend/orderledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/orderledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///orderledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Header set by the upstream auth gateway with the authenticated user id
    ACTOR_ID_HEADER = os.environ.get("ACTOR_ID_HEADER", "X-Actor-Id")

    # Bounded retry for lock contention / optimistic version conflicts
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    UPCOMING_PAYMENT_WINDOW_DAYS = int(os.environ.get("UPCOMING_PAYMENT_WINDOW_DAYS", "30"))
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "Rs.")

    DEMO_SEED_ENABLED = False
