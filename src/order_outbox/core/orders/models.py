"""
Order Request/Response Models

Request models check shape only (types, required fields); business rules
such as positive quantities are enforced by the Order aggregate.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.order import Order, OrderItem


class OrderItemRequest(BaseModel):
    """One requested order line."""
    product_id: str = ""
    product_name: str = ""
    quantity: int
    unit_price: float


class CreateOrderRequest(BaseModel):
    """Request to place an order."""
    customer_id: str = ""
    items: List[OrderItemRequest] = Field(default_factory=list)


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    subtotal: float

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            product_id=str(item.product_id),
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )


class OrderResponse(BaseModel):
    """
    Full order view.

    event_id is set by the write use cases to the outbox event recorded
    with the change.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    items: List[OrderItemResponse]
    total_amount: float
    status: str
    created_at: datetime
    updated_at: datetime
    event_id: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order, event_id: Optional[str] = None) -> "OrderResponse":
        return cls(
            id=str(order.id),
            customer_id=str(order.customer_id),
            items=[OrderItemResponse.from_item(item) for item in order.items],
            total_amount=order.total_amount,
            status=order.status.value,
            created_at=order.created_at,
            updated_at=order.updated_at,
            event_id=event_id,
        )


class OrderSummary(BaseModel):
    """Order list entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: str
    total_amount: float
    item_count: int
    created_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderSummary":
        return cls(
            id=str(order.id),
            status=order.status.value,
            total_amount=order.total_amount,
            item_count=len(order.items),
            created_at=order.created_at,
        )
