"""Persistence for the credit ledger and retention records."""

from retention.storage.db import Database, close_db, get_database, init_db

__all__ = [
    "Database",
    "close_db",
    "get_database",
    "init_db",
]
