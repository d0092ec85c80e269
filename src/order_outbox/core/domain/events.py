"""
Order Domain Events

Event types produced by the Order aggregate, the topic each one is
published to, and the payload builders for each transition.

Event naming convention: Order{PastTenseVerb}
Topic naming convention: order.{past_tense_verb}
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict

from ..errors import DispatchError
from ..result import Err, Ok, Result
from .order import Order


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class OrderEventType(str, Enum):
    """Order lifecycle events."""
    CREATED = "OrderCreated"
    CONFIRMED = "OrderConfirmed"
    SHIPPED = "OrderShipped"
    DELIVERED = "OrderDelivered"
    CANCELLED = "OrderCancelled"

    @property
    def topic(self) -> str:
        return EVENT_TOPICS[self]


EVENT_TOPICS: Dict[OrderEventType, str] = {
    OrderEventType.CREATED: "order.created",
    OrderEventType.CONFIRMED: "order.confirmed",
    OrderEventType.SHIPPED: "order.shipped",
    OrderEventType.DELIVERED: "order.delivered",
    OrderEventType.CANCELLED: "order.cancelled",
}


def resolve_topic(event_type: str) -> Result[str, DispatchError]:
    """
    Resolve the bus topic for a stored event type.

    Ledger rows carry the event type as a plain string, so a row written by
    a newer producer may name a type this build does not know.
    """
    try:
        return Ok(OrderEventType(event_type).topic)
    except ValueError:
        return Err(DispatchError.UNKNOWN_EVENT_TYPE)


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened to an aggregate."""
    event_type: OrderEventType
    aggregate_id: str
    payload: Dict[str, Any]
    occurred_on: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        object.__setattr__(self, "payload", copy.deepcopy(self.payload))


def _order_summary(order: Order) -> Dict[str, Any]:
    return {
        "orderId": str(order.id),
        "customerId": str(order.customer_id),
        "totalAmount": order.total_amount,
    }


def order_created(order: Order) -> DomainEvent:
    """Full order snapshot at creation time."""
    return DomainEvent(
        event_type=OrderEventType.CREATED,
        aggregate_id=str(order.id),
        payload={
            **_order_summary(order),
            "items": [
                {
                    "productId": str(item.product_id),
                    "productName": item.product_name,
                    "quantity": item.quantity,
                    "unitPrice": item.unit_price,
                }
                for item in order.items
            ],
            "status": order.status.value,
            "createdAt": order.created_at.isoformat(),
        },
    )


def _transition_builder(event_type: OrderEventType, timestamp_key: str) -> Callable[[Order], DomainEvent]:
    def build(order: Order) -> DomainEvent:
        occurred_on = _utcnow()
        return DomainEvent(
            event_type=event_type,
            aggregate_id=str(order.id),
            payload={**_order_summary(order), timestamp_key: occurred_on.isoformat()},
            occurred_on=occurred_on,
        )
    build.__name__ = f"order_{event_type.topic.split('.')[1]}"
    return build


order_confirmed = _transition_builder(OrderEventType.CONFIRMED, "confirmedAt")
order_shipped = _transition_builder(OrderEventType.SHIPPED, "shippedAt")
order_delivered = _transition_builder(OrderEventType.DELIVERED, "deliveredAt")
order_cancelled = _transition_builder(OrderEventType.CANCELLED, "cancelledAt")


EVENT_BUILDERS: Dict[OrderEventType, Callable[[Order], DomainEvent]] = {
    OrderEventType.CREATED: order_created,
    OrderEventType.CONFIRMED: order_confirmed,
    OrderEventType.SHIPPED: order_shipped,
    OrderEventType.DELIVERED: order_delivered,
    OrderEventType.CANCELLED: order_cancelled,
}


def transition_event(order: Order, event_type: OrderEventType) -> DomainEvent:
    """Build the domain event for an order transition."""
    return EVENT_BUILDERS[event_type](order)
