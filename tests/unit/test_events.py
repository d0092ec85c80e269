"""
Tests for order domain events and the topic map.
"""

import pytest
from datetime import datetime

from order_outbox.core.domain import (
    EVENT_TOPICS,
    DomainEvent,
    OrderEventType,
    resolve_topic,
    transition_event,
    order_created,
)
from order_outbox.core.errors import DispatchError


class TestTopicMap:
    """Test event type to topic resolution."""

    def test_every_event_type_has_a_topic(self):
        """The topic map is exhaustive."""
        assert set(EVENT_TOPICS) == set(OrderEventType)
        for event_type in OrderEventType:
            assert event_type.topic.startswith("order.")

    @pytest.mark.parametrize("event_type,topic", [
        ("OrderCreated", "order.created"),
        ("OrderConfirmed", "order.confirmed"),
        ("OrderShipped", "order.shipped"),
        ("OrderDelivered", "order.delivered"),
        ("OrderCancelled", "order.cancelled"),
    ])
    def test_resolve_known(self, event_type, topic):
        """Known types resolve to their topic."""
        assert resolve_topic(event_type).unwrap() == topic

    @pytest.mark.parametrize("event_type", ["OrderRefunded", "orderCreated", ""])
    def test_resolve_unknown(self, event_type):
        """Unknown types fail with UNKNOWN_EVENT_TYPE."""
        assert resolve_topic(event_type).error == DispatchError.UNKNOWN_EVENT_TYPE


class TestEventBuilders:
    """Test domain event payloads."""

    def test_order_created_snapshot(self, order):
        """OrderCreated carries the full order snapshot."""
        event = order_created(order)

        assert event.event_type == OrderEventType.CREATED
        assert event.aggregate_id == str(order.id)
        assert event.payload["orderId"] == str(order.id)
        assert event.payload["customerId"] == "customer_123"
        assert event.payload["totalAmount"] == pytest.approx(75.48)
        assert event.payload["status"] == "PENDING"
        assert event.payload["items"][0] == {
            "productId": "product_1",
            "productName": "Coffee Beans",
            "quantity": 2,
            "unitPrice": 29.99,
        }
        datetime.fromisoformat(event.payload["createdAt"])

    @pytest.mark.parametrize("event_type,action,timestamp_key", [
        (OrderEventType.CONFIRMED, "confirm", "confirmedAt"),
        (OrderEventType.CANCELLED, "cancel", "cancelledAt"),
    ])
    def test_transition_payload(self, order, event_type, action, timestamp_key):
        """Transition events carry the summary and a transition timestamp."""
        getattr(order, action)()

        event = transition_event(order, event_type)

        assert event.event_type == event_type
        assert set(event.payload) == {"orderId", "customerId", "totalAmount", timestamp_key}
        assert datetime.fromisoformat(event.payload[timestamp_key]) == event.occurred_on

    def test_domain_event_copies_payload(self):
        """DomainEvent keeps its own copy of the payload."""
        payload = {"items": [1, 2]}
        event = DomainEvent(OrderEventType.CREATED, "order_1", payload)

        payload["items"].append(3)

        assert event.payload == {"items": [1, 2]}
