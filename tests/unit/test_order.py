"""
Tests for the Order aggregate and its state machine.
"""

import pytest
from datetime import datetime, timezone

from order_outbox.core.domain import (
    CustomerId,
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    ORDER_TRANSITIONS,
    ProductId,
)
from order_outbox.core.errors import OrderError


class TestOrderCreation:
    """Test Order.create validation."""

    def test_total_is_sum_of_lines(self, items):
        """totalAmount is the sum of quantity x unit price."""
        order = Order.create(CustomerId("customer_123"), items).unwrap()

        assert order.total_amount == 75.48
        assert order.status == OrderStatus.PENDING
        assert order.created_at == order.updated_at
        assert str(order.id).startswith("order_")

    def test_explicit_id_is_kept(self, items):
        """A caller-supplied id is used as is."""
        order = Order.create(CustomerId("customer_1"), items, id=OrderId("order_fixed")).unwrap()
        assert str(order.id) == "order_fixed"

    def test_missing_customer(self, items):
        """Customer id is required."""
        assert Order.create(None, items).error == OrderError.CUSTOMER_ID_REQUIRED

    def test_empty_items(self):
        """At least one item is required."""
        assert Order.create(CustomerId("customer_1"), []).error == OrderError.ITEMS_REQUIRED

    @pytest.mark.parametrize("item,expected", [
        (OrderItem(None, "Mug", 1, 5.0), OrderError.PRODUCT_ID_REQUIRED),
        (OrderItem(ProductId("product_1"), "  ", 1, 5.0), OrderError.PRODUCT_NAME_REQUIRED),
        (OrderItem(ProductId("product_1"), "Mug", 0, 5.0), OrderError.POSITIVE_QUANTITY_REQUIRED),
        (OrderItem(ProductId("product_1"), "Mug", -2, 5.0), OrderError.POSITIVE_QUANTITY_REQUIRED),
        (OrderItem(ProductId("product_1"), "Mug", 1, -0.01), OrderError.NON_NEGATIVE_PRICE_REQUIRED),
        (OrderItem(ProductId("product_1"), "Mug", 1, float("nan")), OrderError.NON_NEGATIVE_PRICE_REQUIRED),
        (OrderItem(ProductId("product_1"), "Mug", 1, float("inf")), OrderError.NON_NEGATIVE_PRICE_REQUIRED),
    ])
    def test_invalid_item(self, item, expected):
        """Each invalid item field has its own error."""
        assert Order.create(CustomerId("customer_1"), [item]).error == expected

    def test_free_item_allowed(self):
        """A zero unit price is valid."""
        item = OrderItem(ProductId("product_1"), "Sample", 1, 0.0)
        assert Order.create(CustomerId("customer_1"), [item]).is_ok()

    def test_amounts_are_exact_cents(self):
        """Subtotals and totals carry no binary rounding noise."""
        items = [
            OrderItem(ProductId("product_1"), "Pencil", 3, 0.1),
            OrderItem(ProductId("product_2"), "Eraser", 1, 0.2),
        ]
        order = Order.create(CustomerId("customer_1"), items).unwrap()

        assert order.items[0].subtotal == 0.3
        assert order.total_amount == 0.5
        assert order.to_persistence()["total_amount"] == 0.5

    def test_sub_cent_prices_round_half_up(self):
        """Line amounts are rounded to whole cents."""
        item = OrderItem(ProductId("product_1"), "Screw", 1, 0.125)
        assert item.subtotal == 0.13

    def test_first_failing_item_wins(self):
        """Validation stops at the first invalid item."""
        items = [
            OrderItem(ProductId("product_1"), "Mug", 1, 5.0),
            OrderItem(ProductId("product_2"), "Cup", 0, 5.0),
            OrderItem(ProductId("product_3"), "Pot", 1, -1.0),
        ]
        assert Order.create(CustomerId("customer_1"), items).error == OrderError.POSITIVE_QUANTITY_REQUIRED


def _order_in(status: OrderStatus, items) -> Order:
    order = Order.create(CustomerId("customer_1"), items).unwrap()
    path = {
        OrderStatus.PENDING: [],
        OrderStatus.CONFIRMED: ["confirm"],
        OrderStatus.SHIPPED: ["confirm", "ship"],
        OrderStatus.DELIVERED: ["confirm", "ship", "deliver"],
        OrderStatus.CANCELLED: ["cancel"],
    }[status]
    for step in path:
        getattr(order, step)().unwrap()
    assert order.status == status
    return order


ACTION_TARGETS = {
    "confirm": OrderStatus.CONFIRMED,
    "ship": OrderStatus.SHIPPED,
    "deliver": OrderStatus.DELIVERED,
    "cancel": OrderStatus.CANCELLED,
}


class TestOrderTransitions:
    """Test the lifecycle DAG."""

    def test_transition_table_covers_all_states(self):
        """Every status has an entry in the transition table."""
        for status in OrderStatus:
            assert status in ORDER_TRANSITIONS

    def test_terminal_states(self):
        """DELIVERED and CANCELLED are terminal."""
        assert ORDER_TRANSITIONS[OrderStatus.DELIVERED] == []
        assert ORDER_TRANSITIONS[OrderStatus.CANCELLED] == []

    @pytest.mark.parametrize("start", list(OrderStatus))
    @pytest.mark.parametrize("action", list(ACTION_TARGETS))
    def test_every_transition(self, start, action, items):
        """An action succeeds exactly when its target is allowed from the current status."""
        order = _order_in(start, items)
        target = ACTION_TARGETS[action]

        result = getattr(order, action)()

        if target in ORDER_TRANSITIONS[start]:
            assert result.is_ok()
            assert order.status == target
        else:
            assert result.error == OrderError.INVALID_STATE_TRANSITION
            assert order.status == start

    def test_transition_does_not_touch_timestamps(self, order):
        """Transitions change status only."""
        updated_at = order.updated_at
        order.confirm()
        assert order.updated_at == updated_at

    def test_touch_refreshes_updated_at(self, order):
        """touch() sets updated_at."""
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)
        order.touch(later)
        assert order.updated_at == later

    def test_allowed_transitions(self, order):
        """allowed_transitions follows the table."""
        assert order.allowed_transitions() == [OrderStatus.CONFIRMED, OrderStatus.CANCELLED]


class TestOrderPersistence:
    """Test the persistence mapping."""

    def test_round_trip(self, order):
        """from_persistence(to_persistence()) is lossless."""
        order.confirm()
        record = order.to_persistence()

        restored = Order.from_persistence(record).unwrap()

        assert restored.to_persistence() == record
        assert restored.status == OrderStatus.CONFIRMED

    def test_total_recomputed_from_items(self, order):
        """A stored total is ignored in favour of the items."""
        record = order.to_persistence()
        record["total_amount"] = 1.0

        restored = Order.from_persistence(record).unwrap()

        assert restored.total_amount == pytest.approx(75.48)

    @pytest.mark.parametrize("field,value", [
        ("id", "bad-id"),
        ("customer_id", ""),
        ("status", "LOST"),
    ])
    def test_invalid_record(self, order, field, value):
        """Malformed records are rejected."""
        record = order.to_persistence()
        record[field] = value
        assert Order.from_persistence(record).error == OrderError.INVALID_PERSISTED_STATE

    def test_missing_field(self, order):
        """Missing fields are rejected."""
        record = order.to_persistence()
        del record["items"]
        assert Order.from_persistence(record).error == OrderError.INVALID_PERSISTED_STATE
