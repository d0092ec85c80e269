"""
OutboxEvent Aggregate

A durable record of "this event must be delivered". Written in the same
transaction as the aggregate change that produced it, then driven by the
dispatcher:

    PENDING -> PROCESSED            (terminal)
    PENDING -> FAILED -> PENDING    (retry, while under the retry budget)

The retry/abandon policy lives in the dispatcher; the aggregate only
records outcomes and answers can_retry().
"""

import copy
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ..errors import OutboxEventError
from ..result import Err, Ok, Result
from .events import DomainEvent
from .ids import OrderId, OutboxEventId


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class OutboxEventStatus(str, Enum):
    """Status of an outbox event."""
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class OutboxEvent:
    """Outbox ledger row."""

    def __init__(
        self,
        id: OutboxEventId,
        aggregate_id: OrderId,
        event_type: str,
        payload: Mapping[str, Any],
        status: OutboxEventStatus,
        created_at: datetime,
        updated_at: datetime,
        processed_at: Optional[datetime] = None,
        failure_reason: Optional[str] = None,
        retry_count: int = 0,
        abandoned_at: Optional[datetime] = None,
    ):
        self._id = id
        self._aggregate_id = aggregate_id
        self._event_type = event_type
        self._payload = copy.deepcopy(dict(payload))
        self._status = status
        self._created_at = created_at
        self._updated_at = updated_at
        self._processed_at = processed_at
        self._failure_reason = failure_reason
        self._retry_count = retry_count
        self._abandoned_at = abandoned_at

    @classmethod
    def create(
        cls,
        aggregate_id: Optional[OrderId],
        event_type: Optional[str],
        payload: Optional[Mapping[str, Any]],
        id: Optional[OutboxEventId] = None,
    ) -> Result["OutboxEvent", OutboxEventError]:
        """Create a new PENDING outbox event."""
        if not aggregate_id:
            return Err(OutboxEventError.AGGREGATE_ID_REQUIRED)

        if not event_type or not event_type.strip():
            return Err(OutboxEventError.EVENT_TYPE_REQUIRED)

        if payload is None:
            return Err(OutboxEventError.PAYLOAD_REQUIRED)

        now = _utcnow()
        return Ok(cls(
            id=id or OutboxEventId.create(),
            aggregate_id=aggregate_id,
            event_type=event_type.strip(),
            payload=payload,
            status=OutboxEventStatus.PENDING,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_domain_event(cls, event: DomainEvent) -> Result["OutboxEvent", OutboxEventError]:
        """Build the ledger row for a domain event."""
        try:
            aggregate_id = OrderId.from_string(event.aggregate_id)
        except ValueError:
            return Err(OutboxEventError.AGGREGATE_ID_REQUIRED)
        return cls.create(aggregate_id, event.event_type.value, event.payload)

    @classmethod
    def from_persistence(cls, record: Mapping[str, Any]) -> Result["OutboxEvent", OutboxEventError]:
        """Rebuild an outbox event from stored fields."""
        try:
            return Ok(cls(
                id=OutboxEventId.from_string(record["id"]),
                aggregate_id=OrderId.from_string(record["aggregate_id"]),
                event_type=record["event_type"],
                payload=record["payload"],
                status=OutboxEventStatus(record["status"]),
                created_at=record["created_at"],
                updated_at=record["updated_at"],
                processed_at=record.get("processed_at"),
                failure_reason=record.get("failure_reason"),
                retry_count=int(record.get("retry_count") or 0),
                abandoned_at=record.get("abandoned_at"),
            ))
        except (KeyError, TypeError, ValueError):
            return Err(OutboxEventError.INVALID_PERSISTED_STATE)

    @property
    def id(self) -> OutboxEventId:
        return self._id

    @property
    def aggregate_id(self) -> OrderId:
        return self._aggregate_id

    @property
    def event_type(self) -> str:
        return self._event_type

    @property
    def payload(self) -> Mapping[str, Any]:
        return MappingProxyType(self._payload)

    @property
    def status(self) -> OutboxEventStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def processed_at(self) -> Optional[datetime]:
        return self._processed_at

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def abandoned_at(self) -> Optional[datetime]:
        return self._abandoned_at

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned_at is not None

    def mark_as_processed(self) -> Result[None, OutboxEventError]:
        if self._status == OutboxEventStatus.PROCESSED:
            return Err(OutboxEventError.ALREADY_PROCESSED)

        now = _utcnow()
        self._status = OutboxEventStatus.PROCESSED
        self._processed_at = now
        self._failure_reason = None
        self._updated_at = now
        return Ok()

    def mark_as_failed(self, reason: Optional[str]) -> Result[None, OutboxEventError]:
        """Record a failed delivery attempt. Always counts the attempt."""
        if not reason or not reason.strip():
            return Err(OutboxEventError.FAILURE_REASON_REQUIRED)

        self._status = OutboxEventStatus.FAILED
        self._failure_reason = reason.strip()
        self._retry_count += 1
        self._updated_at = _utcnow()
        return Ok()

    def abandon(self, reason: Optional[str]) -> Result[None, OutboxEventError]:
        """Mark FAILED for good; reconciliation never requeues abandoned rows."""
        result = self.mark_as_failed(reason)
        if result.is_ok():
            self._abandoned_at = self._updated_at
        return result

    def retry(self) -> Result[None, OutboxEventError]:
        """Move a FAILED event back to PENDING; retry_count is kept."""
        if self._status != OutboxEventStatus.FAILED:
            return Err(OutboxEventError.CANNOT_RETRY_NON_FAILED_EVENT)

        self._status = OutboxEventStatus.PENDING
        self._failure_reason = None
        self._updated_at = _utcnow()
        return Ok()

    def reset_for_manual_retry(self) -> Result[None, OutboxEventError]:
        """Operator-driven retry: back to PENDING with a fresh retry budget."""
        result = self.retry()
        if result.is_ok():
            self._retry_count = 0
            self._abandoned_at = None
        return result

    def can_retry(self, max_retries: int = 3) -> bool:
        return self._retry_count < max_retries

    def to_persistence(self) -> Dict[str, Any]:
        return {
            "id": str(self._id),
            "aggregate_id": str(self._aggregate_id),
            "event_type": self._event_type,
            "payload": copy.deepcopy(self._payload),
            "status": self._status.value,
            "created_at": self._created_at,
            "updated_at": self._updated_at,
            "processed_at": self._processed_at,
            "failure_reason": self._failure_reason,
            "retry_count": self._retry_count,
            "abandoned_at": self._abandoned_at,
        }

    def __repr__(self) -> str:
        return (
            f"OutboxEvent(id={self._id}, type={self._event_type}, "
            f"status={self._status.value}, retries={self._retry_count})"
        )
