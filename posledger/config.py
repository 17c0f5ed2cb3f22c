# posledger/config.py
from __future__ import annotations
import os


class Config:
    # SQLite DB stored in instance/posledger.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///posledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment terms applied to customers/suppliers that have none on file
    DEFAULT_PAYMENT_TERMS = os.environ.get("POSLEDGER_DEFAULT_PAYMENT_TERMS", "Net 30")

    # Window used by the expiring-batch report
    EXPIRY_WARNING_DAYS = int(os.environ.get("POSLEDGER_EXPIRY_WARNING_DAYS", "30"))

    LOG_LEVEL = os.environ.get("POSLEDGER_LOG_LEVEL", "INFO")
