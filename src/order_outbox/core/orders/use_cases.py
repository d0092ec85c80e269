"""
Order Use Cases

Each write use case changes an Order and records the matching outbox event
in one transaction: both rows commit or neither does. Transitions
(confirm/ship/deliver/cancel) are atomic in the same way as creation.

Every use case returns Ok(response) or Err(ServiceFailure).

Usage:
    create = CreateOrderUseCase(orders, outbox, transactions)
    result = await create.execute({
        "customer_id": "customer_123",
        "items": [{"product_id": "product_1", "product_name": "Mug",
                   "quantity": 2, "unit_price": 9.5}],
    })
    if result.is_ok():
        order = result.value
"""

import logging
from typing import List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..database.adapter import Transaction
from ..database.transaction import TransactionManager
from ..domain.events import OrderEventType, order_created, transition_event
from ..domain.ids import BaseId, CustomerId, OrderId, ProductId
from ..domain.order import Order, OrderItem, OrderStatus
from ..domain.outbox_event import OutboxEvent
from ..domain.repositories import OrderRepository, OutboxEventRepository
from ..errors import (
    ErrorCode,
    OrderError,
    OutboxEventError,
    RepositoryError,
    ServiceError,
    ServiceFailure,
)
from ..observability.metrics import record_counter
from ..result import Err, Ok, Result
from .models import CreateOrderRequest, OrderResponse, OrderSummary

logger = logging.getLogger(__name__)

IdT = TypeVar("IdT", bound=BaseId)
ModelT = TypeVar("ModelT", bound=BaseModel)


def _optional_id(id_type: Type[IdT], value: Optional[str]) -> Optional[IdT]:
    """Blank means missing (the aggregate reports it); malformed raises ValueError."""
    if value is None or not value.strip():
        return None
    return id_type.from_string(value)


def _parse_request(model: Type[ModelT], request: Union[ModelT, Mapping]) -> Result[ModelT, ServiceFailure]:
    if isinstance(request, model):
        return Ok(request)
    try:
        return Ok(model.model_validate(request))
    except ValidationError as e:
        return Err(ServiceFailure(ServiceError.VALIDATION_ERROR, f"Invalid request: {e.error_count()} error(s)"))


def _failure(code: ErrorCode, message: str) -> ServiceFailure:
    """Map a domain or repository error onto the use-case surface."""
    if code is OrderError.INVALID_STATE_TRANSITION or code is RepositoryError.CONFLICT:
        return ServiceFailure(ServiceError.INVALID_STATE_TRANSITION, message, code)
    if isinstance(code, (OrderError, OutboxEventError)):
        return ServiceFailure(ServiceError.VALIDATION_ERROR, message, code)
    if code is RepositoryError.NOT_FOUND:
        return ServiceFailure(ServiceError.ORDER_NOT_FOUND, message, code)
    return ServiceFailure(ServiceError.PERSISTENCE_ERROR, message, code)


class _OrderWriteUseCase:
    """Shared persistence for use cases that change an order."""

    def __init__(
        self,
        orders: OrderRepository,
        outbox: OutboxEventRepository,
        transactions: TransactionManager,
    ):
        self.orders = orders
        self.outbox = outbox
        self.transactions = transactions

    async def _persist(
        self,
        order: Order,
        event: OutboxEvent,
        insert: bool,
        expected_status: Optional[OrderStatus] = None,
    ) -> Result[None, ServiceFailure]:
        """
        Write the order and its event atomically.

        expected_status guards an update: if the stored order has moved on
        since it was loaded, nothing is written and the caller gets
        INVALID_STATE_TRANSITION.
        """
        async def work(tx: Transaction) -> Result[None, RepositoryError]:
            if insert:
                written = await self.orders.save(order, tx)
            else:
                written = await self.orders.update(order, tx, expected_status=expected_status)
            if written.is_err():
                return written
            return await self.outbox.save(event, tx)

        result = await self.transactions.execute_in_transaction(work)
        if result.is_err() and result.error is RepositoryError.CONFLICT:
            logger.warning(f"Order {order.id} changed concurrently, {event.event_type} not recorded")
            return Err(_failure(result.error, f"Order {order.id} was changed by another request"))
        if result.is_err():
            logger.error(f"Failed to persist order {order.id} with event {event.event_type}: {result.error.value}")
            return Err(_failure(result.error, f"Could not save order {order.id}"))
        return Ok()

    async def _load(self, order_id: str) -> Result[Order, ServiceFailure]:
        try:
            parsed = OrderId.from_string(order_id)
        except ValueError as e:
            return Err(ServiceFailure(ServiceError.VALIDATION_ERROR, str(e)))
        return await _find_order(self.orders, parsed)


async def _find_order(orders: OrderRepository, order_id: OrderId) -> Result[Order, ServiceFailure]:
    found = await orders.find_by_id(str(order_id))
    if found.is_err():
        return Err(_failure(found.error, f"Could not load order {order_id}"))
    if found.value is None:
        return Err(ServiceFailure(ServiceError.ORDER_NOT_FOUND, f"Order {order_id} not found"))
    return Ok(found.value)


class CreateOrderUseCase(_OrderWriteUseCase):
    """Place a new order and record OrderCreated."""

    async def execute(self, request: Union[CreateOrderRequest, Mapping]) -> Result[OrderResponse, ServiceFailure]:
        parsed = _parse_request(CreateOrderRequest, request)
        if parsed.is_err():
            return parsed
        req = parsed.value

        try:
            customer_id = _optional_id(CustomerId, req.customer_id)
            items = [
                OrderItem(
                    product_id=_optional_id(ProductId, item.product_id),
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in req.items
            ]
        except ValueError as e:
            return Err(ServiceFailure(ServiceError.VALIDATION_ERROR, str(e)))

        created = Order.create(customer_id, items)
        if created.is_err():
            return Err(_failure(created.error, f"Invalid order: {created.error.value}"))
        order = created.value

        event = OutboxEvent.from_domain_event(order_created(order))
        if event.is_err():
            return Err(_failure(event.error, f"Invalid outbox event: {event.error.value}"))

        saved = await self._persist(order, event.value, insert=True)
        if saved.is_err():
            return saved

        record_counter("orders_created_total")
        logger.info(f"Created order {order.id} for {order.customer_id} (total={order.total_amount:.2f})")
        return Ok(OrderResponse.from_order(order, event_id=str(event.value.id)))


class TransitionOrderUseCase(_OrderWriteUseCase):
    """
    Load an order, apply one lifecycle transition, record its event.

    Subclasses name the Order method to call and the event it produces.
    """

    action: str = ""
    event_type: OrderEventType

    async def execute(self, order_id: str) -> Result[OrderResponse, ServiceFailure]:
        loaded = await self._load(order_id)
        if loaded.is_err():
            return loaded
        order = loaded.value

        previous = order.status
        applied = getattr(order, self.action)()
        if applied.is_err():
            return Err(_failure(
                applied.error,
                f"Cannot {self.action} order {order.id} in status {previous.value}"
            ))
        order.touch()

        event = OutboxEvent.from_domain_event(transition_event(order, self.event_type))
        if event.is_err():
            return Err(_failure(event.error, f"Invalid outbox event: {event.error.value}"))

        saved = await self._persist(order, event.value, insert=False, expected_status=previous)
        if saved.is_err():
            return saved

        logger.info(f"Order {order.id}: {previous.value} -> {order.status.value}")
        return Ok(OrderResponse.from_order(order, event_id=str(event.value.id)))


class ConfirmOrderUseCase(TransitionOrderUseCase):
    action = "confirm"
    event_type = OrderEventType.CONFIRMED


class ShipOrderUseCase(TransitionOrderUseCase):
    action = "ship"
    event_type = OrderEventType.SHIPPED


class DeliverOrderUseCase(TransitionOrderUseCase):
    action = "deliver"
    event_type = OrderEventType.DELIVERED


class CancelOrderUseCase(TransitionOrderUseCase):
    action = "cancel"
    event_type = OrderEventType.CANCELLED


class GetOrderUseCase:
    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def execute(self, order_id: str) -> Result[OrderResponse, ServiceFailure]:
        try:
            parsed = OrderId.from_string(order_id)
        except ValueError as e:
            return Err(ServiceFailure(ServiceError.VALIDATION_ERROR, str(e)))

        found = await _find_order(self.orders, parsed)
        if found.is_err():
            return found
        return Ok(OrderResponse.from_order(found.value))


class ListOrdersUseCase:
    """Orders of one customer, oldest first."""

    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def execute(self, customer_id: str) -> Result[List[OrderSummary], ServiceFailure]:
        try:
            parsed = CustomerId.from_string(customer_id)
        except ValueError as e:
            return Err(ServiceFailure(ServiceError.VALIDATION_ERROR, str(e)))

        found = await self.orders.find_by_customer_id(str(parsed))
        if found.is_err():
            return Err(_failure(found.error, f"Could not list orders for {parsed}"))
        return Ok([OrderSummary.from_order(order) for order in found.value])
