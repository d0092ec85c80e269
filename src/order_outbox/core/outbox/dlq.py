"""
Dead Letter Queue (DLQ) Management

Operator tooling for abandoned outbox events: FAILED rows the dispatcher
gave up on, either because the retry budget ran out or because their event
type has no topic. Abandoned rows stay in the ledger until an operator
resets them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..domain.outbox_event import OutboxEvent
from ..domain.repositories import OutboxEventRepository
from ..errors import RepositoryError
from ..result import Err, Ok, Result

logger = logging.getLogger(__name__)


@dataclass
class DLQEntry:
    """An abandoned outbox event."""
    id: str
    aggregate_id: str
    event_type: str
    payload: Dict[str, Any]
    retry_count: int
    last_error: Optional[str]
    created_at: datetime
    abandoned_at: datetime

    @classmethod
    def from_event(cls, event: OutboxEvent) -> "DLQEntry":
        return cls(
            id=str(event.id),
            aggregate_id=str(event.aggregate_id),
            event_type=event.event_type,
            payload=dict(event.payload),
            retry_count=event.retry_count,
            last_error=event.failure_reason,
            created_at=event.created_at,
            abandoned_at=event.abandoned_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "aggregate_id": self.aggregate_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "abandoned_at": self.abandoned_at.isoformat() if self.abandoned_at else None,
        }


class DLQManager:
    """
    Manages abandoned outbox events.

    Responsibilities:
    - Query DLQ entries
    - Reset entries for another delivery attempt
    - Summarize the DLQ
    """

    def __init__(self, repository: OutboxEventRepository):
        self.repository = repository

    async def get_entries(
        self,
        limit: int = 100,
        offset: int = 0,
        aggregate_id: Optional[str] = None
    ) -> Result[List[DLQEntry], RepositoryError]:
        """Abandoned events, newest first."""
        if aggregate_id:
            events = await self.repository.find_by_aggregate_id(aggregate_id)
            if events.is_err():
                return events
            abandoned = [event for event in reversed(events.value) if event.is_abandoned]
            return Ok([DLQEntry.from_event(event) for event in abandoned[offset:offset + limit]])

        events = await self.repository.find_abandoned(limit, offset)
        if events.is_err():
            return events
        return Ok([DLQEntry.from_event(event) for event in events.value])

    async def get_count(self) -> Result[int, RepositoryError]:
        counts = await self.repository.count_abandoned()
        if counts.is_err():
            return counts
        return Ok(sum(counts.value.values()))

    async def retry_entry(self, event_id: str, operator_id: Optional[str] = None) -> Result[bool, RepositoryError]:
        """
        Put an abandoned event back to PENDING with a fresh retry budget.

        Args:
            event_id: The outbox event ID
            operator_id: ID of operator performing the action

        Returns:
            Ok(True) if the entry was reset, Ok(False) if it is not abandoned
        """
        found = await self.repository.find_by_id(event_id)
        if found.is_err():
            return found
        event = found.value
        if event is None:
            return Err(RepositoryError.NOT_FOUND)

        if not event.is_abandoned or event.reset_for_manual_retry().is_err():
            logger.info(f"Outbox event {event_id} is not in the DLQ, nothing to retry")
            return Ok(False)

        saved = await self.repository.update(event)
        if saved.is_err():
            return saved

        logger.info(
            f"DLQ entry {event_id} reset for retry by {operator_id}",
            extra={"event_id": event_id, "dlq_action": "retry", "operator_id": operator_id}
        )
        return Ok(True)

    async def get_stats(self) -> Result[Dict[str, Any], RepositoryError]:
        """Get DLQ statistics."""
        counts = await self.repository.count_abandoned()
        if counts.is_err():
            return counts

        newest = await self.repository.find_abandoned(limit=1)
        if newest.is_err():
            return newest

        return Ok({
            "total_count": sum(counts.value.values()),
            "by_event_type": dict(sorted(counts.value.items(), key=lambda item: -item[1])),
            "newest_entry": newest.value[0].abandoned_at.isoformat() if newest.value else None,
        })
