"""
Order Domain

Aggregates, identifiers, domain events and repository contracts.
"""

from .ids import BaseId, OrderId, CustomerId, ProductId, OutboxEventId
from .order import Order, OrderItem, OrderStatus, ORDER_TRANSITIONS
from .events import (
    OrderEventType,
    EVENT_TOPICS,
    DomainEvent,
    resolve_topic,
    transition_event,
    order_created,
    order_confirmed,
    order_shipped,
    order_delivered,
    order_cancelled,
)
from .outbox_event import OutboxEvent, OutboxEventStatus
from .repositories import OrderRepository, OutboxEventRepository

__all__ = [
    # Identifiers
    "BaseId",
    "OrderId",
    "CustomerId",
    "ProductId",
    "OutboxEventId",
    # Order
    "Order",
    "OrderItem",
    "OrderStatus",
    "ORDER_TRANSITIONS",
    # Events
    "OrderEventType",
    "EVENT_TOPICS",
    "DomainEvent",
    "resolve_topic",
    "transition_event",
    "order_created",
    "order_confirmed",
    "order_shipped",
    "order_delivered",
    "order_cancelled",
    # Outbox
    "OutboxEvent",
    "OutboxEventStatus",
    # Repositories
    "OrderRepository",
    "OutboxEventRepository",
]
