"""
Integration Test Fixtures

Each test gets a fresh SQLite database file with the schema applied.
"""

import pytest

from order_outbox.core.database import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    DatabaseTransactionManager,
    SqlOrderRepository,
    SqlOutboxEventRepository,
    ensure_schema,
)
from order_outbox.core.messaging import InMemoryMessagePublisher
from order_outbox.core.orders import CreateOrderUseCase


@pytest.fixture
async def db(tmp_path):
    adapter = DatabaseAdapter(DatabaseConfig(
        backend=DatabaseBackend.SQLITE,
        sqlite_path=str(tmp_path / "orders.db"),
    ))
    await adapter.connect()
    await ensure_schema(adapter)
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def order_repository(db):
    return SqlOrderRepository(db)


@pytest.fixture
def outbox_repository(db):
    return SqlOutboxEventRepository(db)


@pytest.fixture
def transactions(db):
    return DatabaseTransactionManager(db)


@pytest.fixture
async def publisher():
    publisher = InMemoryMessagePublisher()
    await publisher.connect()
    return publisher


@pytest.fixture
def create_order(order_repository, outbox_repository, transactions):
    return CreateOrderUseCase(order_repository, outbox_repository, transactions)


@pytest.fixture
def order_request():
    return {
        "customer_id": "customer_123",
        "items": [
            {"product_id": "product_1", "product_name": "Coffee Beans", "quantity": 2, "unit_price": 29.99},
            {"product_id": "product_2", "product_name": "Filter Papers", "quantity": 1, "unit_price": 15.50},
        ],
    }
