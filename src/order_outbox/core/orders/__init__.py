"""
Order Use Cases

Create orders and drive them through their lifecycle, recording an outbox
event with every change.
"""

from .models import (
    CreateOrderRequest,
    OrderItemRequest,
    OrderItemResponse,
    OrderResponse,
    OrderSummary,
)
from .use_cases import (
    CreateOrderUseCase,
    TransitionOrderUseCase,
    ConfirmOrderUseCase,
    ShipOrderUseCase,
    DeliverOrderUseCase,
    CancelOrderUseCase,
    GetOrderUseCase,
    ListOrdersUseCase,
)

__all__ = [
    # Models
    "CreateOrderRequest",
    "OrderItemRequest",
    "OrderItemResponse",
    "OrderResponse",
    "OrderSummary",
    # Use cases
    "CreateOrderUseCase",
    "TransitionOrderUseCase",
    "ConfirmOrderUseCase",
    "ShipOrderUseCase",
    "DeliverOrderUseCase",
    "CancelOrderUseCase",
    "GetOrderUseCase",
    "ListOrdersUseCase",
]
