"""
Unit Test Fixtures
"""

import pytest

from order_outbox.core.domain import CustomerId, Order, OrderItem, ProductId


def make_items():
    return [
        OrderItem(ProductId("product_1"), "Coffee Beans", 2, 29.99),
        OrderItem(ProductId("product_2"), "Filter Papers", 1, 15.50),
    ]


@pytest.fixture
def items():
    return make_items()


@pytest.fixture
def order(items):
    return Order.create(CustomerId("customer_123"), items).unwrap()
