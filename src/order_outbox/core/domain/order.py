"""
Order Aggregate

Order state and its lifecycle state machine:

    PENDING -> CONFIRMED -> SHIPPED -> DELIVERED
       |           |           |
       +-----------+-----------+--> CANCELLED

Transitions are guard-and-mutate: on a wrong predecessor state they return
Err(INVALID_STATE_TRANSITION) and leave the order untouched.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import OrderError
from ..result import Err, Ok, Result
from .ids import CustomerId, OrderId, ProductId


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


_CENT = Decimal("0.01")


def _cents(amount: Decimal) -> float:
    """Round to whole cents; amounts stay floats at the edges (JSON, REAL columns)."""
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


class OrderStatus(str, Enum):
    """Order lifecycle states."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [],  # Terminal state
    OrderStatus.CANCELLED: [],  # Terminal state
}


@dataclass(frozen=True)
class OrderItem:
    """A single order line."""
    product_id: Optional[ProductId]
    product_name: str
    quantity: int
    unit_price: float

    @property
    def subtotal(self) -> float:
        return _cents(Decimal(str(self.unit_price)) * self.quantity)

    def validate(self) -> Result[None, OrderError]:
        if not self.product_id:
            return Err(OrderError.PRODUCT_ID_REQUIRED)
        if not self.product_name or not self.product_name.strip():
            return Err(OrderError.PRODUCT_NAME_REQUIRED)
        if self.quantity <= 0:
            return Err(OrderError.POSITIVE_QUANTITY_REQUIRED)
        if not math.isfinite(self.unit_price) or self.unit_price < 0:
            return Err(OrderError.NON_NEGATIVE_PRICE_REQUIRED)
        return Ok()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


class Order:
    """
    Order aggregate root.

    Build new orders with Order.create() and stored ones with
    Order.from_persistence(); the constructor does no validation.
    """

    def __init__(
        self,
        id: OrderId,
        customer_id: CustomerId,
        items: Sequence[OrderItem],
        status: OrderStatus,
        created_at: datetime,
        updated_at: datetime,
    ):
        self._id = id
        self._customer_id = customer_id
        self._items = tuple(items)
        self._status = status
        self._created_at = created_at
        self._updated_at = updated_at

    @classmethod
    def create(
        cls,
        customer_id: Optional[CustomerId],
        items: Optional[Sequence[OrderItem]],
        id: Optional[OrderId] = None,
    ) -> Result["Order", OrderError]:
        """
        Create a new PENDING order.

        Validation short-circuits on the first failing check, items are
        checked in order.
        """
        if not customer_id:
            return Err(OrderError.CUSTOMER_ID_REQUIRED)

        if not items:
            return Err(OrderError.ITEMS_REQUIRED)

        for item in items:
            validation = item.validate()
            if validation.is_err():
                return validation

        now = _utcnow()
        return Ok(cls(
            id=id or OrderId.create(),
            customer_id=customer_id,
            items=items,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_persistence(cls, record: Mapping[str, Any]) -> Result["Order", OrderError]:
        """Rebuild an order from stored fields; total_amount is recomputed."""
        try:
            items = [
                OrderItem(
                    product_id=ProductId.from_string(item["product_id"]),
                    product_name=item["product_name"],
                    quantity=int(item["quantity"]),
                    unit_price=float(item["unit_price"]),
                )
                for item in record["items"]
            ]
            return Ok(cls(
                id=OrderId.from_string(record["id"]),
                customer_id=CustomerId.from_string(record["customer_id"]),
                items=items,
                status=OrderStatus(record["status"]),
                created_at=record["created_at"],
                updated_at=record["updated_at"],
            ))
        except (KeyError, TypeError, ValueError):
            return Err(OrderError.INVALID_PERSISTED_STATE)

    @property
    def id(self) -> OrderId:
        return self._id

    @property
    def customer_id(self) -> CustomerId:
        return self._customer_id

    @property
    def items(self) -> List[OrderItem]:
        return list(self._items)

    @property
    def total_amount(self) -> float:
        return _cents(sum((Decimal(str(item.unit_price)) * item.quantity for item in self._items), Decimal(0)))

    @property
    def status(self) -> OrderStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    def allowed_transitions(self) -> List[OrderStatus]:
        return list(ORDER_TRANSITIONS[self._status])

    def confirm(self) -> Result[None, OrderError]:
        return self._transition({OrderStatus.PENDING}, OrderStatus.CONFIRMED)

    def ship(self) -> Result[None, OrderError]:
        return self._transition({OrderStatus.CONFIRMED}, OrderStatus.SHIPPED)

    def deliver(self) -> Result[None, OrderError]:
        return self._transition({OrderStatus.SHIPPED}, OrderStatus.DELIVERED)

    def cancel(self) -> Result[None, OrderError]:
        return self._transition(
            {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED},
            OrderStatus.CANCELLED,
        )

    def _transition(self, allowed_from: set, to_status: OrderStatus) -> Result[None, OrderError]:
        if self._status not in allowed_from:
            return Err(OrderError.INVALID_STATE_TRANSITION)
        self._status = to_status
        return Ok()

    def touch(self, now: Optional[datetime] = None) -> None:
        """Refresh updated_at before persisting a change."""
        self._updated_at = now or _utcnow()

    def to_persistence(self) -> Dict[str, Any]:
        return {
            "id": str(self._id),
            "customer_id": str(self._customer_id),
            "items": [item.to_dict() for item in self._items],
            "total_amount": self.total_amount,
            "status": self._status.value,
            "created_at": self._created_at,
            "updated_at": self._updated_at,
        }

    def __repr__(self) -> str:
        return f"Order(id={self._id}, status={self._status.value}, total={self.total_amount})"
