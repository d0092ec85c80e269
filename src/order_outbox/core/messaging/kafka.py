"""
Kafka Message Publisher

Publishes outbox messages with aiokafka's idempotent producer. The
message key is the aggregate id, so every event of one order lands on
the same partition.

Environment Variables:
    KAFKA_BROKERS: Comma-separated bootstrap servers (default: localhost:9092)
    KAFKA_CLIENT_ID: Producer client id (default: order-outbox)
"""

import logging
import os
from typing import List, Optional, Tuple

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from ..errors import DispatchError
from ..observability.tracing import inject_trace_context
from ..result import Err, Ok, Result
from .publisher import MessagePublisher, OutboxMessage

logger = logging.getLogger(__name__)


class KafkaConfig:
    """Kafka producer configuration from environment variables."""

    def __init__(
        self,
        brokers: Optional[List[str]] = None,
        client_id: Optional[str] = None,
        request_timeout_ms: int = 30000,
    ):
        self.brokers = brokers or [
            broker.strip()
            for broker in os.getenv("KAFKA_BROKERS", "localhost:9092").split(",")
            if broker.strip()
        ]
        self.client_id = client_id or os.getenv("KAFKA_CLIENT_ID", "order-outbox")
        self.request_timeout_ms = request_timeout_ms

    def __repr__(self) -> str:
        return f"KafkaConfig(brokers={self.brokers}, client_id={self.client_id})"


class KafkaMessagePublisher(MessagePublisher):
    """MessagePublisher over an AIOKafkaProducer."""

    def __init__(self, config: Optional[KafkaConfig] = None):
        self.config = config or KafkaConfig()
        self._producer: Optional[AIOKafkaProducer] = None

    async def connect(self) -> None:
        if self._producer is not None:
            return

        producer = AIOKafkaProducer(
            bootstrap_servers=self.config.brokers,
            client_id=self.config.client_id,
            enable_idempotence=True,
            acks="all",
            request_timeout_ms=self.config.request_timeout_ms,
        )
        await producer.start()
        self._producer = producer
        logger.info(f"Kafka producer connected: {self.config}")

    async def disconnect(self) -> None:
        if self._producer is None:
            return
        try:
            await self._producer.stop()
        finally:
            self._producer = None
        logger.info("Kafka producer disconnected")

    def is_connected(self) -> bool:
        return self._producer is not None

    async def publish(self, topic: str, message: OutboxMessage) -> Result[None, DispatchError]:
        if self._producer is None:
            return Err(DispatchError.NOT_CONNECTED)

        try:
            await self._producer.send_and_wait(
                topic,
                value=message.to_bytes(),
                key=message.aggregate_id.encode("utf-8"),
                headers=self._headers(message),
            )
        except KafkaError as e:
            logger.warning(
                f"Kafka publish failed for event {message.event_id} on {topic}: {e}",
                extra={"event_id": message.event_id, "topic": topic},
            )
            return Err(DispatchError.PUBLISH_FAILED)

        logger.debug(f"Published event {message.event_id} to {topic}")
        return Ok()

    def _headers(self, message: OutboxMessage) -> List[Tuple[str, bytes]]:
        carrier = inject_trace_context({})
        headers = [
            ("content-type", b"application/json"),
            ("eventType", message.event_type.encode("utf-8")),
        ]
        headers.extend((key, value.encode("utf-8")) for key, value in carrier.items())
        return headers
