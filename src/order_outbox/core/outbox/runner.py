"""
Outbox Worker

Runs the dispatcher as its own process, draining the ledger to Kafka until
SIGTERM or SIGINT. A second signal exits immediately.

Usage:
    python -m order_outbox.core.outbox.runner
    order-outbox-runner

Environment:
    DATABASE_BACKEND, DATABASE_URL, SQLITE_PATH   see core.database.adapter
    KAFKA_BROKERS, KAFKA_CLIENT_ID                see core.messaging.kafka
    OUTBOX_*                                      see core.outbox.config
    OTEL_EXPORTER_OTLP_ENDPOINT                   traces and metrics (optional)
    LOG_LEVEL                                     default INFO
    LOG_FORMAT                                    json (default) or text
"""

import asyncio
import logging
import os
import signal
from typing import Any, Dict, Optional

from ..database.adapter import DatabaseAdapter
from ..database.outbox_repository import SqlOutboxEventRepository
from ..database.schema import ensure_schema
from ..domain.repositories import OutboxEventRepository
from ..messaging.kafka import KafkaMessagePublisher
from ..messaging.publisher import MessagePublisher
from ..observability import configure_logging, init_metrics, init_tracing
from .config import OutboxProcessorConfig
from .dlq import DLQManager
from .lifecycle import outbox_lifespan
from .processor import OutboxProcessor

logger = logging.getLogger(__name__)


class OutboxRunner:
    """
    Owns the database connection and the processor for one worker process.

    The publisher defaults to Kafka; tests pass an in-memory one.
    """

    def __init__(
        self,
        db: Optional[DatabaseAdapter] = None,
        publisher: Optional[MessagePublisher] = None,
        config: Optional[OutboxProcessorConfig] = None,
    ):
        self.db = db or DatabaseAdapter()
        self.publisher = publisher or KafkaMessagePublisher()
        self.config = config or OutboxProcessorConfig.from_env()
        self.processor: Optional[OutboxProcessor] = None
        self._stop = asyncio.Event()
        self._signals_received = 0

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._on_signal, sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        self._signals_received += 1
        if self._signals_received > 1:
            logger.warning(f"{sig.name} received during shutdown, exiting now")
            os._exit(1)
        logger.info(f"{sig.name} received, letting the current batch finish")
        self.request_shutdown()

    def request_shutdown(self) -> None:
        self._stop.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._stop.is_set()

    async def _report_dead_letters(self, repository: OutboxEventRepository) -> None:
        stats = await DLQManager(repository).get_stats()
        if stats.is_err():
            logger.warning(f"Could not read dead-letter stats: {stats.error.value}")
        elif stats.value["total_count"]:
            logger.warning(
                f"{stats.value['total_count']} abandoned outbox events need operator attention",
                extra={"dlq_by_event_type": stats.value["by_event_type"]}
            )

    async def run(self) -> None:
        """Serve until request_shutdown() is called."""
        logger.info(
            f"Outbox worker starting: {self.db.config}, batch_size={self.config.batch_size}, "
            f"max_retries={self.config.max_retries}, interval={self.config.processing_interval_ms}ms"
        )

        await self.db.connect()
        try:
            await ensure_schema(self.db)
            repository = SqlOutboxEventRepository(self.db)
            await self._report_dead_letters(repository)

            async with outbox_lifespan(repository, self.publisher, self.config) as processor:
                self.processor = processor
                await self._stop.wait()
        finally:
            self.processor = None
            await self.db.disconnect()
            logger.info("Outbox worker stopped")

    async def health_check(self) -> Dict[str, Any]:
        health = {"status": "unhealthy", "running": False}
        if self.processor is not None:
            health = await self.processor.health_check()
        return {**health, "shutdown_requested": self.shutdown_requested}


async def main() -> None:
    configure_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        structured=os.getenv("LOG_FORMAT", "json").lower() == "json",
    )
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    init_tracing(otlp_endpoint=endpoint)
    init_metrics(otlp_endpoint=endpoint)

    runner = OutboxRunner()
    runner.install_signal_handlers()
    await runner.run()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
