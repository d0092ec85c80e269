"""
Transaction Manager

Runs a unit of work so that every write made through its transaction
handle commits together or not at all.

Usage:
    async def work(tx: Transaction) -> Result:
        saved = await orders.save(order, tx)
        if saved.is_err():
            return saved
        return await outbox.save(event, tx)

    result = await manager.execute_in_transaction(work)
    # Ok -> committed, Err -> rolled back
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from ..errors import RepositoryError
from ..result import Err, Result
from .adapter import DatabaseAdapter, Transaction

logger = logging.getLogger(__name__)

UnitOfWork = Callable[[Transaction], Awaitable[Result]]


class _Rollback(Exception):
    """Internal signal: the unit of work returned Err."""

    def __init__(self, result: Err):
        super().__init__(result.error)
        self.result = result


class TransactionManager(ABC):
    """Atomic-write coordinator."""

    @abstractmethod
    async def execute_in_transaction(self, work: UnitOfWork) -> Result:
        """Run work in one transaction; Ok commits, Err or exception rolls back."""


class DatabaseTransactionManager(TransactionManager):
    """Transaction manager over the DatabaseAdapter."""

    def __init__(self, db: DatabaseAdapter):
        self._db = db

    async def execute_in_transaction(self, work: UnitOfWork) -> Result:
        try:
            async with self._db.transaction() as tx:
                result = await work(tx)
                if result.is_err():
                    raise _Rollback(result)
                return result
        except _Rollback as rollback:
            logger.debug(f"Transaction rolled back: {rollback.result.error}")
            return rollback.result
        except Exception as e:
            logger.error(f"Transaction failed and was rolled back: {e}", exc_info=True)
            return Err(RepositoryError.DATABASE_ERROR)
