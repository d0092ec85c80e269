"""
Message Publisher

The bus-client contract the outbox dispatcher publishes through, and the
wire message it publishes.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ..domain.outbox_event import OutboxEvent
from ..errors import DispatchError
from ..result import Ok, Result


class OutboxMessage(BaseModel):
    """
    Wire format of a published outbox event.

    Serialized with camelCase keys:
        {"eventId": ..., "eventType": "OrderCreated", "aggregateId": ...,
         "payload": {...}, "occurredOn": "2026-01-01T00:00:00+00:00"}
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_id: str = Field(alias="eventId")
    event_type: str = Field(alias="eventType")
    aggregate_id: str = Field(alias="aggregateId")
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_on: datetime = Field(alias="occurredOn")

    @classmethod
    def from_outbox_event(cls, event: OutboxEvent) -> "OutboxMessage":
        return cls(
            event_id=str(event.id),
            event_type=event.event_type,
            aggregate_id=str(event.aggregate_id),
            payload=dict(event.payload),
            occurred_on=event.created_at,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")


class MessagePublisher(ABC):
    """
    Message bus client used by the outbox dispatcher.

    Failures are returned, never raised, so the dispatcher can branch its
    retry accounting on them.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def publish(self, topic: str, message: OutboxMessage) -> Result[None, DispatchError]:
        """Publish one message; Ok once the bus has acknowledged it."""

    async def publish_batch(self, topic: str, messages: List[OutboxMessage]) -> Result[None, DispatchError]:
        """Publish messages in order, stopping at the first failure."""
        for message in messages:
            result = await self.publish(topic, message)
            if result.is_err():
                return result
        return Ok()
