"""
Messaging

Bus clients the outbox dispatcher publishes through.
"""

from .publisher import MessagePublisher, OutboxMessage
from .kafka import KafkaConfig, KafkaMessagePublisher
from .memory import InMemoryMessagePublisher

__all__ = [
    "MessagePublisher",
    "OutboxMessage",
    "KafkaConfig",
    "KafkaMessagePublisher",
    "InMemoryMessagePublisher",
]
