# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///backoffice.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Random base36 tail of order numbers ("001-20250101-9G7T1KQ2")
    ORDER_NUMBER_SUFFIX_LENGTH = int(os.environ.get("ORDER_NUMBER_SUFFIX_LENGTH", "8"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Retries for lock/deadlock failures on structural writes
    TX_RETRY_ATTEMPTS = int(os.environ.get("TX_RETRY_ATTEMPTS", "3"))

    # Out-of-band reposting of failed cash movements gives up after this many tries
    POSTING_MAX_ATTEMPTS = int(os.environ.get("POSTING_MAX_ATTEMPTS", "5"))
