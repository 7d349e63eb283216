"""
Repository pattern for the usage ledger.

Persists usage records handed over by the metering core. The ledger is
append-only: records are never updated or deleted.
"""

import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

import structlog

from relay_metering.core.cost import CostBreakdown
from relay_metering.core.record import UsageRecord
from relay_metering.core.usage import UsageVector

from .db import DEFAULT_LEDGER_PATH, get_connection

logger = structlog.get_logger()

_COLUMNS = """
    timestamp, account_id, model_name, input_tokens, output_tokens,
    cache_create_tokens, cache_read_tokens, rate_multiplier, cost,
    cost_breakdown
"""


def _row_to_record(row) -> UsageRecord:
    breakdown = json.loads(row[9])
    return UsageRecord(
        timestamp=datetime.fromisoformat(row[0]),
        account_id=row[1],
        model_name=row[2],
        usage=UsageVector(
            input_tokens=row[3],
            output_tokens=row[4],
            cache_create_tokens=row[5],
            cache_read_tokens=row[6],
        ),
        rate_multiplier=Decimal(row[7]),
        breakdown=CostBreakdown(
            input_cost=Decimal(breakdown["input_cost"]),
            output_cost=Decimal(breakdown["output_cost"]),
            cache_write_cost=Decimal(breakdown["cache_write_cost"]),
            cache_read_cost=Decimal(breakdown["cache_read_cost"]),
            total=Decimal(breakdown["total"]),
            actual=Decimal(breakdown["actual"]),
        ),
    )


def _record_to_row(record: UsageRecord) -> tuple:
    return (
        record.timestamp.isoformat(),
        record.account_id,
        record.model_name,
        record.usage.input_tokens,
        record.usage.output_tokens,
        record.usage.cache_create_tokens,
        record.usage.cache_read_tokens,
        str(record.rate_multiplier),
        str(record.cost),
        json.dumps(record.breakdown.to_dict()),
    )


class UsageRepository:
    """Repository for reading the usage ledger."""

    def __init__(self, db_path: str = DEFAULT_LEDGER_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_recent_records(
        self,
        account_id: Optional[str] = None,
        model_name: Optional[str] = None,
        limit: int = 100
    ) -> List[UsageRecord]:
        """Get recent usage records, newest first."""
        return fetch_recent_usage_records(
            account_id=account_id,
            model_name=model_name,
            limit=limit,
            db_path=self.db_path
        )

    def get_daily_cost(self, account_id: str, day: Optional[date] = None) -> Decimal:
        """Sum the billed cost of an account for one calendar day.

        Amounts are summed as Decimal in Python; SQLite would sum them as
        floats.

        Args:
            account_id: Account to total
            day: Calendar day, defaults to today

        Returns:
            Total billed cost for the day
        """
        day = day or date.today()
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                SELECT cost FROM usage_record
                WHERE account_id = ? AND timestamp >= ? AND timestamp < ?
                """,
                (account_id, start.isoformat(), end.isoformat())
            )
            total = Decimal("0")
            for (cost,) in cursor.fetchall():
                total += Decimal(cost)
            return total
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_LEDGER_PATH) -> None:
    """Create the usage_record table if it doesn't exist.

    Money columns are TEXT so Decimal amounts survive exactly.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                account_id TEXT NOT NULL,
                model_name TEXT NOT NULL,
                input_tokens INTEGER,
                output_tokens INTEGER,
                cache_create_tokens INTEGER,
                cache_read_tokens INTEGER,
                rate_multiplier TEXT NOT NULL,
                cost TEXT NOT NULL,
                cost_breakdown TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_usage_record_account_time
            ON usage_record (account_id, timestamp)
        """)
        conn.commit()
    finally:
        conn.close()


def insert_usage_record(record: UsageRecord, db_path: str = DEFAULT_LEDGER_PATH) -> None:
    """Append a single usage record to the ledger.

    Args:
        record: The usage record to persist
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(
            f"INSERT INTO usage_record ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            _record_to_row(record)
        )
        conn.commit()
    finally:
        conn.close()
    logger.debug(
        "Usage record stored",
        account_id=record.account_id,
        model=record.model_name,
        cost=str(record.cost),
    )


def fetch_recent_usage_records(
    account_id: Optional[str] = None,
    model_name: Optional[str] = None,
    limit: int = 100,
    db_path: str = DEFAULT_LEDGER_PATH
) -> List[UsageRecord]:
    """Fetch recent usage records, optionally filtered by account and model.

    Args:
        account_id: Optional filter for a specific account
        model_name: Optional filter for a specific model
        limit: Maximum number of records to return
        db_path: Path to SQLite database file

    Returns:
        List of usage records ordered by timestamp (newest first)
    """
    conn = get_connection(db_path)
    try:
        query = f"SELECT {_COLUMNS} FROM usage_record"
        params = []
        conditions = []

        if account_id:
            conditions.append("account_id = ?")
            params.append(account_id)
        if model_name:
            conditions.append("model_name = ?")
            params.append(model_name)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = conn.execute(query, params)
        return [_row_to_record(row) for row in cursor.fetchall()]
    finally:
        conn.close()
