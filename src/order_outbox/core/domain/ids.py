"""
Typed Identifiers

Prefixed, validated identifiers for aggregates and events.
"""

from dataclasses import dataclass
from typing import ClassVar, Type, TypeVar
from uuid import uuid4

IdT = TypeVar("IdT", bound="BaseId")


@dataclass(frozen=True)
class BaseId:
    """Opaque, non-empty string identifier with value equality."""

    value: str
    prefix: ClassVar[str] = ""

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError(f"{type(self).__name__} cannot be empty")
        object.__setattr__(self, "value", self.value.strip())
        if self.prefix and not self.value.startswith(self.prefix):
            raise ValueError(
                f"Invalid {type(self).__name__} format. Must start with \"{self.prefix}\""
            )

    @classmethod
    def create(cls: Type[IdT]) -> IdT:
        """Generate a new identifier."""
        return cls(f"{cls.prefix}{uuid4()}")

    @classmethod
    def from_string(cls: Type[IdT], value: str) -> IdT:
        """
        Rebuild an identifier from its string form.

        Raises:
            ValueError: If the value is empty or lacks the prefix
        """
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class OrderId(BaseId):
    prefix: ClassVar[str] = "order_"


@dataclass(frozen=True)
class CustomerId(BaseId):
    prefix: ClassVar[str] = "customer_"


@dataclass(frozen=True)
class ProductId(BaseId):
    prefix: ClassVar[str] = "product_"


@dataclass(frozen=True)
class OutboxEventId(BaseId):
    pass
