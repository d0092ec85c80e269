"""
Error Codes

Typed error codes for every boundary of the order/outbox core, each
classified into one error kind.

Kinds decide handling:
- VALIDATION: bad input, surfaced to the caller, never retried
- NOT_FOUND: referenced aggregate/event absent, surfaced, never retried
- TRANSIENT: storage or bus unavailable, retried by the dispatcher
- INVARIANT: illegal transition on an aggregate, caller logic error
- CONFIGURATION: programming/config error (e.g. unmapped event type)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class ErrorKind(str, Enum):
    """Error taxonomy."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    INVARIANT = "invariant"
    CONFIGURATION = "configuration"


class OrderError(str, Enum):
    """Errors returned by the Order aggregate."""
    CUSTOMER_ID_REQUIRED = "CUSTOMER_ID_REQUIRED"
    ITEMS_REQUIRED = "ITEMS_REQUIRED"
    PRODUCT_ID_REQUIRED = "PRODUCT_ID_REQUIRED"
    PRODUCT_NAME_REQUIRED = "PRODUCT_NAME_REQUIRED"
    POSITIVE_QUANTITY_REQUIRED = "POSITIVE_QUANTITY_REQUIRED"
    NON_NEGATIVE_PRICE_REQUIRED = "NON_NEGATIVE_PRICE_REQUIRED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_PERSISTED_STATE = "INVALID_PERSISTED_STATE"


class OutboxEventError(str, Enum):
    """Errors returned by the OutboxEvent aggregate."""
    AGGREGATE_ID_REQUIRED = "AGGREGATE_ID_REQUIRED"
    EVENT_TYPE_REQUIRED = "EVENT_TYPE_REQUIRED"
    PAYLOAD_REQUIRED = "PAYLOAD_REQUIRED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    FAILURE_REASON_REQUIRED = "FAILURE_REASON_REQUIRED"
    CANNOT_RETRY_NON_FAILED_EVENT = "CANNOT_RETRY_NON_FAILED_EVENT"
    INVALID_PERSISTED_STATE = "INVALID_PERSISTED_STATE"


class RepositoryError(str, Enum):
    """Errors returned by repositories."""
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"


class DispatchError(str, Enum):
    """Errors raised while dispatching outbox events to the bus."""
    UNKNOWN_EVENT_TYPE = "UNKNOWN_EVENT_TYPE"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"


class ServiceError(str, Enum):
    """Errors surfaced by use cases."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


ErrorCode = Union[OrderError, OutboxEventError, RepositoryError, DispatchError, ServiceError]


ERROR_KINDS: Dict[ErrorCode, ErrorKind] = {
    OrderError.CUSTOMER_ID_REQUIRED: ErrorKind.VALIDATION,
    OrderError.ITEMS_REQUIRED: ErrorKind.VALIDATION,
    OrderError.PRODUCT_ID_REQUIRED: ErrorKind.VALIDATION,
    OrderError.PRODUCT_NAME_REQUIRED: ErrorKind.VALIDATION,
    OrderError.POSITIVE_QUANTITY_REQUIRED: ErrorKind.VALIDATION,
    OrderError.NON_NEGATIVE_PRICE_REQUIRED: ErrorKind.VALIDATION,
    OrderError.INVALID_STATE_TRANSITION: ErrorKind.INVARIANT,
    OrderError.INVALID_PERSISTED_STATE: ErrorKind.VALIDATION,
    OutboxEventError.AGGREGATE_ID_REQUIRED: ErrorKind.VALIDATION,
    OutboxEventError.EVENT_TYPE_REQUIRED: ErrorKind.VALIDATION,
    OutboxEventError.PAYLOAD_REQUIRED: ErrorKind.VALIDATION,
    OutboxEventError.ALREADY_PROCESSED: ErrorKind.INVARIANT,
    OutboxEventError.FAILURE_REASON_REQUIRED: ErrorKind.VALIDATION,
    OutboxEventError.CANNOT_RETRY_NON_FAILED_EVENT: ErrorKind.INVARIANT,
    OutboxEventError.INVALID_PERSISTED_STATE: ErrorKind.VALIDATION,
    RepositoryError.NOT_FOUND: ErrorKind.NOT_FOUND,
    RepositoryError.DUPLICATE_KEY: ErrorKind.INVARIANT,
    RepositoryError.DATABASE_ERROR: ErrorKind.TRANSIENT,
    RepositoryError.VALIDATION_ERROR: ErrorKind.VALIDATION,
    RepositoryError.CONFLICT: ErrorKind.INVARIANT,
    DispatchError.UNKNOWN_EVENT_TYPE: ErrorKind.CONFIGURATION,
    DispatchError.PUBLISH_FAILED: ErrorKind.TRANSIENT,
    DispatchError.NOT_CONNECTED: ErrorKind.TRANSIENT,
    ServiceError.VALIDATION_ERROR: ErrorKind.VALIDATION,
    ServiceError.ORDER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ServiceError.INVALID_STATE_TRANSITION: ErrorKind.INVARIANT,
    ServiceError.PERSISTENCE_ERROR: ErrorKind.TRANSIENT,
}


def get_error_kind(code: ErrorCode) -> ErrorKind:
    """
    Get the error kind for an error code.

    Args:
        code: Any error code from this module

    Returns:
        The error kind (defaults to TRANSIENT if not mapped)
    """
    return ERROR_KINDS.get(code, ErrorKind.TRANSIENT)


def is_retryable(code: ErrorCode) -> bool:
    """Only transient infrastructure errors are worth retrying."""
    return get_error_kind(code) == ErrorKind.TRANSIENT


@dataclass(frozen=True)
class ServiceFailure:
    """Aggregated failure returned by a use case."""
    code: ServiceError
    message: str
    cause: Optional[ErrorCode] = None

    @property
    def kind(self) -> ErrorKind:
        return get_error_kind(self.code)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code.value}: {self.message} ({self.cause.value})"
        return f"{self.code.value}: {self.message}"
