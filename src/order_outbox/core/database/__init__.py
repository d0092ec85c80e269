"""
Database

Async adapter (PostgreSQL via asyncpg, SQLite via aiosqlite), schema,
atomic-write coordinator and the SQL repositories.
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    DuplicateKeyError,
    Transaction,
    affected_rows,
)
from .schema import SCHEMA_STATEMENTS, ensure_schema
from .transaction import DatabaseTransactionManager, TransactionManager, UnitOfWork
from .order_repository import SqlOrderRepository
from .outbox_repository import SqlOutboxEventRepository

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "DuplicateKeyError",
    "Transaction",
    "affected_rows",
    "SCHEMA_STATEMENTS",
    "ensure_schema",
    "DatabaseTransactionManager",
    "TransactionManager",
    "UnitOfWork",
    "SqlOrderRepository",
    "SqlOutboxEventRepository",
]
