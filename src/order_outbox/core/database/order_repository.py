"""
SQL Order Repository
"""

import logging
from typing import Any, Dict, List, Optional, Union

from ..domain.order import Order, OrderStatus
from ..domain.repositories import OrderRepository
from ..errors import RepositoryError
from ..result import Err, Ok, Result
from .adapter import DatabaseAdapter, DuplicateKeyError, Transaction, affected_rows
from .serialization import from_db_json, from_db_time, to_db_json, to_db_time

logger = logging.getLogger(__name__)

_COLUMNS = "id, customer_id, items, total_amount, status, created_at, updated_at"


class SqlOrderRepository(OrderRepository):
    """Orders stored in the `orders` table."""

    def __init__(self, db: DatabaseAdapter):
        self._db = db

    def _executor(self, tx: Optional[Transaction]) -> Union[DatabaseAdapter, Transaction]:
        return tx if tx is not None else self._db

    async def save(self, order: Order, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        record = order.to_persistence()
        try:
            await self._executor(tx).execute(
                f"""
                INSERT INTO orders ({_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                record["id"],
                record["customer_id"],
                to_db_json(record["items"]),
                float(record["total_amount"]),
                record["status"],
                to_db_time(record["created_at"]),
                to_db_time(record["updated_at"]),
            )
        except DuplicateKeyError:
            logger.warning(f"Order {record['id']} already exists")
            return Err(RepositoryError.DUPLICATE_KEY)
        except Exception as e:
            logger.error(f"Error saving order {record['id']}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)
        return Ok()

    async def find_by_id(self, order_id: str) -> Result[Optional[Order], RepositoryError]:
        try:
            row = await self._db.fetchrow(
                f"SELECT {_COLUMNS} FROM orders WHERE id = $1",
                order_id
            )
        except Exception as e:
            logger.error(f"Error finding order {order_id}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        if row is None:
            return Ok(None)
        return self._to_order(row)

    async def find_by_customer_id(self, customer_id: str) -> Result[List[Order], RepositoryError]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {_COLUMNS} FROM orders
                WHERE customer_id = $1
                ORDER BY created_at ASC
                """,
                customer_id
            )
        except Exception as e:
            logger.error(f"Error finding orders for customer {customer_id}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        orders = []
        for row in rows:
            mapped = self._to_order(row)
            if mapped.is_err():
                return mapped
            orders.append(mapped.value)
        return Ok(orders)

    async def update(
        self,
        order: Order,
        tx: Optional[Transaction] = None,
        expected_status: Optional[OrderStatus] = None,
    ) -> Result[None, RepositoryError]:
        record = order.to_persistence()
        query = """
            UPDATE orders
            SET customer_id = $1, items = $2, total_amount = $3,
                status = $4, updated_at = $5
            WHERE id = $6
        """
        args = [
            record["customer_id"],
            to_db_json(record["items"]),
            float(record["total_amount"]),
            record["status"],
            to_db_time(record["updated_at"]),
            record["id"],
        ]
        if expected_status is not None:
            query += " AND status = $7"
            args.append(OrderStatus(expected_status).value)

        try:
            status = await self._executor(tx).execute(query, *args)
        except Exception as e:
            logger.error(f"Error updating order {record['id']}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        if affected_rows(status) == 0:
            if expected_status is not None:
                logger.info(f"Order {record['id']} is no longer {OrderStatus(expected_status).value}, not updated")
                return Err(RepositoryError.CONFLICT)
            return Err(RepositoryError.NOT_FOUND)
        return Ok()

    async def delete(self, order_id: str, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        try:
            status = await self._executor(tx).execute(
                "DELETE FROM orders WHERE id = $1",
                order_id
            )
        except Exception as e:
            logger.error(f"Error deleting order {order_id}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        if affected_rows(status) == 0:
            return Err(RepositoryError.NOT_FOUND)
        return Ok()

    def _to_order(self, row: Dict[str, Any]) -> Result[Order, RepositoryError]:
        try:
            record = {
                **row,
                "items": from_db_json(row["items"]),
                "created_at": from_db_time(row["created_at"]),
                "updated_at": from_db_time(row["updated_at"]),
            }
        except ValueError as e:
            logger.error(f"Malformed order row {row.get('id')}: {e}")
            return Err(RepositoryError.VALIDATION_ERROR)

        result = Order.from_persistence(record)
        if result.is_err():
            logger.error(f"Cannot restore order {row.get('id')}: {result.error.value}")
            return Err(RepositoryError.VALIDATION_ERROR)
        return result
