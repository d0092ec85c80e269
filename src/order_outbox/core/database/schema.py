"""
Schema

Tables for orders and the outbox ledger. Column types are kept portable so
the same DDL runs on SQLite and PostgreSQL: timestamps are ISO-8601 UTC
text, items and payloads are JSON text.
"""

import logging

from .adapter import DatabaseAdapter

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        customer_id TEXT NOT NULL,
        items TEXT NOT NULL,
        total_amount DOUBLE PRECISION NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_customer_id ON orders (customer_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS outbox_events (
        id TEXT PRIMARY KEY,
        aggregate_id TEXT NOT NULL,
        event_type TEXT NOT NULL,
        payload TEXT NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        processed_at TEXT,
        failure_reason TEXT,
        retry_count INTEGER NOT NULL DEFAULT 0,
        abandoned_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_outbox_events_status ON outbox_events (status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_outbox_events_aggregate_id ON outbox_events (aggregate_id, created_at)",
]


async def ensure_schema(db: DatabaseAdapter) -> None:
    """Create tables and indexes if they do not exist."""
    await db.executescript(SCHEMA_STATEMENTS)
    logger.info("Order/outbox schema ready")
