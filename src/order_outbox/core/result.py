"""
Result Values

Explicit success/error return values for aggregate, repository and
use-case operations. Callers branch on ``is_ok()`` / ``is_err()`` instead
of catching exceptions.

Usage:
    result = order.confirm()
    if result.is_err():
        logger.warning(f"Cannot confirm: {result.error}")
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


class UnwrapError(RuntimeError):
    """Raised when unwrapping an Err."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""
    value: T = None

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result carrying a typed error."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise UnwrapError(f"Called unwrap() on Err: {self.error!r}")

    def unwrap_or(self, default):
        return default


Result = Union[Ok[T], Err[E]]
