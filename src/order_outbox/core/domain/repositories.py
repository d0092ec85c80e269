"""
Repository Contracts

Persistence ports for the Order and OutboxEvent aggregates. Every
operation returns a Result; writes take an optional transaction handle so
several writes can share one atomic commit.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Optional

from ..errors import RepositoryError
from ..result import Result
from .order import Order, OrderStatus
from .outbox_event import OutboxEvent, OutboxEventStatus

if TYPE_CHECKING:
    from ..database.adapter import Transaction


class OrderRepository(ABC):
    """Persistence for orders."""

    @abstractmethod
    async def save(self, order: Order, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """Insert a new order. DUPLICATE_KEY if the id exists."""

    @abstractmethod
    async def find_by_id(self, order_id: str) -> Result[Optional[Order], RepositoryError]:
        """Ok(None) when absent."""

    @abstractmethod
    async def find_by_customer_id(self, customer_id: str) -> Result[List[Order], RepositoryError]:
        """Orders of one customer, oldest first."""

    @abstractmethod
    async def update(
        self,
        order: Order,
        tx: Optional["Transaction"] = None,
        expected_status: Optional[OrderStatus] = None,
    ) -> Result[None, RepositoryError]:
        """
        NOT_FOUND if the order does not exist.

        With expected_status the row is only written while it still has that
        status; otherwise CONFLICT.
        """

    @abstractmethod
    async def delete(self, order_id: str, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """NOT_FOUND if the order does not exist."""


class OutboxEventRepository(ABC):
    """Persistence for the outbox ledger."""

    @abstractmethod
    async def save(self, event: OutboxEvent, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """Insert a new ledger row. DUPLICATE_KEY if the id exists."""

    @abstractmethod
    async def find_by_id(self, event_id: str) -> Result[Optional[OutboxEvent], RepositoryError]:
        """Ok(None) when absent."""

    @abstractmethod
    async def find_pending_events(self, limit: int = 100) -> Result[List[OutboxEvent], RepositoryError]:
        """PENDING rows, oldest first."""

    @abstractmethod
    async def find_by_status(
        self, status: OutboxEventStatus, limit: int = 100
    ) -> Result[List[OutboxEvent], RepositoryError]:
        """Rows in a status, oldest first."""

    @abstractmethod
    async def find_retryable(self, max_retries: int, limit: int = 100) -> Result[List[OutboxEvent], RepositoryError]:
        """FAILED rows under the retry budget and not abandoned, oldest first."""

    @abstractmethod
    async def find_abandoned(self, limit: int = 100, offset: int = 0) -> Result[List[OutboxEvent], RepositoryError]:
        """Abandoned FAILED rows, newest first."""

    @abstractmethod
    async def find_by_aggregate_id(self, aggregate_id: str) -> Result[List[OutboxEvent], RepositoryError]:
        """All rows produced by one aggregate, oldest first."""

    @abstractmethod
    async def update(self, event: OutboxEvent, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """NOT_FOUND if the row does not exist."""

    @abstractmethod
    async def delete(self, event_id: str, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """NOT_FOUND if the row does not exist."""

    @abstractmethod
    async def mark_as_processed(self, event_id: str, tx: Optional["Transaction"] = None) -> Result[None, RepositoryError]:
        """Set PROCESSED directly in storage."""

    @abstractmethod
    async def mark_as_failed(
        self, event_id: str, reason: str, tx: Optional["Transaction"] = None
    ) -> Result[None, RepositoryError]:
        """Set FAILED and increment retry_count directly in storage."""

    @abstractmethod
    async def count_by_status(self) -> Result[Dict[str, int], RepositoryError]:
        """Row count per status (every status present, zero if empty)."""

    @abstractmethod
    async def count_abandoned(self) -> Result[Dict[str, int], RepositoryError]:
        """Abandoned row count per event type."""
