"""
Database connection management.

Provides the SQLite connection backing the usage ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_LEDGER_PATH = "relay_metering.db"


def get_connection(db_path: str = DEFAULT_LEDGER_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
