"""
SQL Outbox Event Repository

The outbox ledger, stored in the `outbox_events` table.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..domain.outbox_event import OutboxEvent, OutboxEventStatus
from ..domain.repositories import OutboxEventRepository
from ..errors import RepositoryError
from ..result import Err, Ok, Result
from .adapter import DatabaseAdapter, DuplicateKeyError, Transaction, affected_rows
from .serialization import from_db_json, from_db_time, to_db_json, to_db_time

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, aggregate_id, event_type, payload, status, created_at, updated_at, "
    "processed_at, failure_reason, retry_count, abandoned_at"
)


def _utcnow_text() -> str:
    return to_db_time(datetime.now(timezone.utc))


class SqlOutboxEventRepository(OutboxEventRepository):
    """Outbox events stored in the `outbox_events` table."""

    def __init__(self, db: DatabaseAdapter):
        self._db = db

    def _executor(self, tx: Optional[Transaction]) -> Union[DatabaseAdapter, Transaction]:
        return tx if tx is not None else self._db

    async def save(self, event: OutboxEvent, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        record = event.to_persistence()
        try:
            await self._executor(tx).execute(
                f"""
                INSERT INTO outbox_events ({_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                """,
                record["id"],
                record["aggregate_id"],
                record["event_type"],
                to_db_json(record["payload"]),
                record["status"],
                to_db_time(record["created_at"]),
                to_db_time(record["updated_at"]),
                to_db_time(record["processed_at"]),
                record["failure_reason"],
                record["retry_count"],
                to_db_time(record["abandoned_at"]),
            )
        except DuplicateKeyError:
            logger.warning(f"Outbox event {record['id']} already exists")
            return Err(RepositoryError.DUPLICATE_KEY)
        except Exception as e:
            logger.error(f"Error saving outbox event {record['id']}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        logger.debug(
            "Wrote event to outbox: id=%s type=%s aggregate=%s",
            record["id"], record["event_type"], record["aggregate_id"]
        )
        return Ok()

    async def find_by_id(self, event_id: str) -> Result[Optional[OutboxEvent], RepositoryError]:
        rows = await self._select("WHERE id = $1", event_id)
        if rows.is_err():
            return rows
        return Ok(rows.value[0] if rows.value else None)

    async def find_pending_events(self, limit: int = 100) -> Result[List[OutboxEvent], RepositoryError]:
        return await self.find_by_status(OutboxEventStatus.PENDING, limit)

    async def find_by_status(
        self, status: OutboxEventStatus, limit: int = 100
    ) -> Result[List[OutboxEvent], RepositoryError]:
        return await self._select(
            "WHERE status = $1 ORDER BY created_at ASC LIMIT $2",
            OutboxEventStatus(status).value, limit
        )

    async def find_retryable(self, max_retries: int, limit: int = 100) -> Result[List[OutboxEvent], RepositoryError]:
        return await self._select(
            """
            WHERE status = $1 AND retry_count < $2 AND abandoned_at IS NULL
            ORDER BY created_at ASC LIMIT $3
            """,
            OutboxEventStatus.FAILED.value, max_retries, limit
        )

    async def find_abandoned(self, limit: int = 100, offset: int = 0) -> Result[List[OutboxEvent], RepositoryError]:
        return await self._select(
            """
            WHERE status = $1 AND abandoned_at IS NOT NULL
            ORDER BY created_at DESC LIMIT $2 OFFSET $3
            """,
            OutboxEventStatus.FAILED.value, limit, offset
        )

    async def find_by_aggregate_id(self, aggregate_id: str) -> Result[List[OutboxEvent], RepositoryError]:
        return await self._select(
            "WHERE aggregate_id = $1 ORDER BY created_at ASC",
            aggregate_id
        )

    async def update(self, event: OutboxEvent, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        record = event.to_persistence()
        # payload is immutable after creation and is not rewritten
        return await self._write(
            f"update outbox event {record['id']}",
            tx,
            """
            UPDATE outbox_events
            SET status = $1, updated_at = $2, processed_at = $3,
                failure_reason = $4, retry_count = $5, abandoned_at = $6
            WHERE id = $7
            """,
            record["status"],
            to_db_time(record["updated_at"]),
            to_db_time(record["processed_at"]),
            record["failure_reason"],
            record["retry_count"],
            to_db_time(record["abandoned_at"]),
            record["id"],
        )

    async def delete(self, event_id: str, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        return await self._write(
            f"delete outbox event {event_id}",
            tx,
            "DELETE FROM outbox_events WHERE id = $1",
            event_id,
        )

    async def mark_as_processed(self, event_id: str, tx: Optional[Transaction] = None) -> Result[None, RepositoryError]:
        now = _utcnow_text()
        return await self._write(
            f"mark outbox event {event_id} processed",
            tx,
            """
            UPDATE outbox_events
            SET status = $1, processed_at = $2, updated_at = $3, failure_reason = NULL
            WHERE id = $4
            """,
            OutboxEventStatus.PROCESSED.value, now, now, event_id,
        )

    async def mark_as_failed(
        self, event_id: str, reason: str, tx: Optional[Transaction] = None
    ) -> Result[None, RepositoryError]:
        return await self._write(
            f"mark outbox event {event_id} failed",
            tx,
            """
            UPDATE outbox_events
            SET status = $1, failure_reason = $2, updated_at = $3,
                retry_count = retry_count + 1
            WHERE id = $4
            """,
            OutboxEventStatus.FAILED.value, reason.strip(), _utcnow_text(), event_id,
        )

    async def count_by_status(self) -> Result[Dict[str, int], RepositoryError]:
        try:
            rows = await self._db.fetch(
                """
                SELECT status, COUNT(*) as count
                FROM outbox_events
                GROUP BY status
                """
            )
        except Exception as e:
            logger.error(f"Error counting outbox events: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        stats = {status.value: 0 for status in OutboxEventStatus}
        for row in rows:
            stats[row["status"]] = int(row["count"])
        return Ok(stats)

    async def count_abandoned(self) -> Result[Dict[str, int], RepositoryError]:
        try:
            rows = await self._db.fetch(
                """
                SELECT event_type, COUNT(*) as count
                FROM outbox_events
                WHERE status = $1 AND abandoned_at IS NOT NULL
                GROUP BY event_type
                """,
                OutboxEventStatus.FAILED.value
            )
        except Exception as e:
            logger.error(f"Error counting abandoned outbox events: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        return Ok({row["event_type"]: int(row["count"]) for row in rows})

    async def _write(self, description: str, tx: Optional[Transaction], query: str, *args) -> Result[None, RepositoryError]:
        try:
            status = await self._executor(tx).execute(query, *args)
        except Exception as e:
            logger.error(f"Failed to {description}: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        if affected_rows(status) == 0:
            return Err(RepositoryError.NOT_FOUND)
        return Ok()

    async def _select(self, clause: str, *args) -> Result[List[OutboxEvent], RepositoryError]:
        try:
            rows = await self._db.fetch(f"SELECT {_COLUMNS} FROM outbox_events {clause}", *args)
        except Exception as e:
            logger.error(f"Error querying outbox events: {e}")
            return Err(RepositoryError.DATABASE_ERROR)

        events = []
        for row in rows:
            mapped = self._to_event(row)
            if mapped.is_err():
                return mapped
            events.append(mapped.value)
        return Ok(events)

    def _to_event(self, row: Dict[str, Any]) -> Result[OutboxEvent, RepositoryError]:
        try:
            record = {
                **row,
                "payload": from_db_json(row["payload"]),
                "created_at": from_db_time(row["created_at"]),
                "updated_at": from_db_time(row["updated_at"]),
                "processed_at": from_db_time(row["processed_at"]),
                "abandoned_at": from_db_time(row["abandoned_at"]),
            }
        except ValueError as e:
            logger.error(f"Malformed outbox row {row.get('id')}: {e}")
            return Err(RepositoryError.VALIDATION_ERROR)

        result = OutboxEvent.from_persistence(record)
        if result.is_err():
            logger.error(f"Cannot restore outbox event {row.get('id')}: {result.error.value}")
            return Err(RepositoryError.VALIDATION_ERROR)
        return result
