"""
Outbox Processor

Background worker that drains PENDING outbox events to the message bus.

Each tick fetches up to `batch_size` PENDING events, oldest first, and for
each one resolves its topic, publishes, and records the outcome before
moving to the next event:

    published              -> PROCESSED
    publish failed         -> FAILED, retry_count + 1
    publisher disconnected -> left PENDING, rest of the batch skipped
    budget exhausted       -> FAILED and abandoned (permanently failed)
    unknown event type     -> FAILED and abandoned, never retried

A separate reconciliation pass moves FAILED events still under the retry
budget back to PENDING. It runs on its own interval when one is
configured, or when process_failed_events() is called.

Ticks, reconciliation passes and manual triggers share one lock, so the
same batch is never dispatched twice concurrently. The processor assumes
it is the only dispatcher running against the ledger.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from ..domain.events import resolve_topic
from ..domain.outbox_event import OutboxEvent
from ..domain.repositories import OutboxEventRepository
from ..errors import DispatchError, RepositoryError
from ..messaging.publisher import MessagePublisher, OutboxMessage
from ..observability.metrics import record_counter, record_histogram
from ..observability.tracing import add_event_to_span, create_span
from ..result import Result
from .config import OutboxProcessorConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventOutcome(str, Enum):
    """What a tick did with one event."""
    PROCESSED = "processed"
    FAILED = "failed"
    ABANDONED = "abandoned"
    SKIPPED = "skipped"


@dataclass
class BatchReport:
    """Counts for one dispatch batch."""
    fetched: int = 0
    processed: int = 0
    failed: int = 0
    abandoned: int = 0
    skipped: int = 0

    def record(self, outcome: EventOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class OutboxProcessor:
    """
    Processes outbox events and publishes them.

    Usage:
        processor = OutboxProcessor(repository, publisher, OutboxProcessorConfig())
        await processor.start()
        ...
        await processor.stop()

        # or drive it by hand
        report = await processor.process_outbox_events()
        requeued = await processor.process_failed_events()
    """

    def __init__(
        self,
        repository: OutboxEventRepository,
        publisher: MessagePublisher,
        config: Optional[OutboxProcessorConfig] = None,
    ):
        self.repository = repository
        self.publisher = publisher
        self.config = config or OutboxProcessorConfig()
        self._lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._reconcile_task: Optional[asyncio.Task] = None
        self._running = False
        self._ticks = 0
        self._last_tick_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Connect the publisher and start the loop. No-op if already running."""
        if self._running:
            return

        await self.publisher.connect()
        self._stop_event = asyncio.Event()
        self._running = True
        self._task = asyncio.create_task(
            self._loop(self.config.processing_interval, self._tick),
            name="outbox-processor"
        )
        if self.config.reconciliation_interval is not None:
            self._reconcile_task = asyncio.create_task(
                self._loop(self.config.reconciliation_interval, self.process_failed_events),
                name="outbox-reconciliation"
            )

        logger.info(
            f"OutboxProcessor started (batch_size={self.config.batch_size}, "
            f"max_retries={self.config.max_retries}, "
            f"interval={self.config.processing_interval_ms}ms)"
        )

    async def stop(self) -> None:
        """
        Stop the loop and disconnect the publisher.

        A tick already in flight is allowed to finish; no new tick starts
        once stop has been requested. A manual batch holding the lock also
        finishes before the publisher goes away.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        tasks = [task for task in (self._task, self._reconcile_task) if task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._reconcile_task = None

        async with self._lock:
            try:
                await self.publisher.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting publisher: {e}", exc_info=True)

        logger.info("OutboxProcessor stopped")

    async def _loop(self, interval: float, tick: Callable[[], Awaitable[Any]]) -> None:
        while not self._stop_event.is_set():
            try:
                await tick()
            except Exception as e:
                self._last_error = str(e)
                logger.error(f"OutboxProcessor error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def _tick(self) -> BatchReport:
        return await self.process_outbox_events()

    async def process_outbox_events(self) -> BatchReport:
        """Dispatch one batch of PENDING events."""
        async with self._lock:
            self._ticks += 1
            self._last_tick_at = _utcnow()
            return await self._process_batch()

    async def _process_batch(self) -> BatchReport:
        report = BatchReport()

        if not self.publisher.is_connected():
            logger.warning("Publisher is not connected, skipping outbox batch")
            return report

        started = time.monotonic()
        with create_span("outbox.process_batch", {"outbox.batch_size": self.config.batch_size}) as span:
            pending = await self.repository.find_pending_events(self.config.batch_size)
            if pending.is_err():
                self._last_error = f"fetch failed: {pending.error.value}"
                logger.error(f"Failed to fetch pending outbox events: {pending.error.value}")
                return report

            report.fetched = len(pending.value)
            for position, event in enumerate(pending.value):
                if not self.publisher.is_connected():
                    report.skipped += report.fetched - position
                    logger.warning(f"Publisher disconnected mid-batch, leaving {report.fetched - position} events pending")
                    break
                report.record(await self._dispatch(event))

            for key, value in report.to_dict().items():
                span.set_attribute(f"outbox.{key}", value)

        record_histogram("outbox_batch_duration_seconds", time.monotonic() - started)

        if report.fetched:
            logger.info(
                f"Outbox batch: fetched={report.fetched} processed={report.processed} "
                f"failed={report.failed} abandoned={report.abandoned} skipped={report.skipped}"
            )
        return report

    async def _dispatch(self, event: OutboxEvent) -> EventOutcome:
        topic = resolve_topic(event.event_type)
        if topic.is_err():
            logger.error(
                f"No topic mapped for event type {event.event_type} "
                f"(outbox event {event.id}), abandoning",
                extra={"event_id": str(event.id), "event_type": event.event_type}
            )
            return await self._abandon(event, f"{topic.error.value}: {event.event_type}")

        message = OutboxMessage.from_outbox_event(event)
        with create_span(
            "outbox.publish",
            {"messaging.destination": topic.value, "outbox.event_id": str(event.id)}
        ):
            published = await self.publisher.publish(topic.value, message)

        if published.is_ok():
            return await self._complete(event, topic.value)
        if published.error is DispatchError.NOT_CONNECTED:
            # not an attempt: the row stays PENDING with its budget intact
            logger.warning(f"Publisher not connected, outbox event {event.id} left pending")
            return EventOutcome.SKIPPED

        reason = f"{published.error.value}: publish to {topic.value} failed"
        if self._has_retry_left(event):
            return await self._fail(event, reason)
        return await self._abandon(event, reason)

    def _has_retry_left(self, event: OutboxEvent) -> bool:
        """True if the budget still allows a retry once this failed attempt is counted."""
        return event.can_retry(self.config.max_retries - 1)

    async def _complete(self, event: OutboxEvent, topic: str) -> EventOutcome:
        marked = event.mark_as_processed()
        if marked.is_err():
            logger.debug(f"Outbox event {event.id} already processed: {marked.error.value}")
            return EventOutcome.SKIPPED

        if not await self._persist(event, "processed"):
            return EventOutcome.SKIPPED

        record_counter("outbox_processed_total", 1, {"event_type": event.event_type, "topic": topic})
        logger.debug(f"Delivered outbox event {event.id} to {topic}")
        return EventOutcome.PROCESSED

    async def _fail(self, event: OutboxEvent, reason: str) -> EventOutcome:
        event.mark_as_failed(reason)
        if not await self._persist(event, "failed"):
            return EventOutcome.SKIPPED

        record_counter("outbox_failed_total", 1, {"event_type": event.event_type})
        logger.warning(
            f"Outbox event {event.id} failed (attempt {event.retry_count}): {reason}",
            extra={"event_id": str(event.id), "retry_count": event.retry_count}
        )
        return EventOutcome.FAILED

    async def _abandon(self, event: OutboxEvent, reason: str) -> EventOutcome:
        event.abandon(reason)
        if not await self._persist(event, "abandoned"):
            return EventOutcome.SKIPPED

        record_counter("outbox_failed_total", 1, {"event_type": event.event_type})
        record_counter("outbox_abandoned_total", 1, {"event_type": event.event_type})
        add_event_to_span("outbox.permanently_failed", {"outbox.event_id": str(event.id)})
        logger.error(
            f"Outbox event {event.id} permanently failed after {event.retry_count} attempts: {reason}",
            extra={
                "event_id": str(event.id),
                "event_type": event.event_type,
                "retry_count": event.retry_count,
                "permanently_failed": True,
            }
        )
        return EventOutcome.ABANDONED

    async def _persist(self, event: OutboxEvent, outcome: str) -> bool:
        saved = await self.repository.update(event)
        if saved.is_err():
            self._last_error = f"update failed: {saved.error.value}"
            logger.error(
                f"Could not record {outcome} outbox event {event.id}: {saved.error.value}; "
                f"it stays in its stored state"
            )
            return False
        return True

    async def process_failed_events(self) -> int:
        """
        Move FAILED events still under the retry budget back to PENDING.

        Abandoned events and events past the budget are left FAILED.

        Returns:
            Number of events requeued
        """
        async with self._lock:
            retryable = await self.repository.find_retryable(self.config.max_retries, self.config.batch_size)
            if retryable.is_err():
                self._last_error = f"reconciliation fetch failed: {retryable.error.value}"
                logger.error(f"Failed to fetch retryable outbox events: {retryable.error.value}")
                return 0

            requeued = 0
            for event in retryable.value:
                if event.is_abandoned or not event.can_retry(self.config.max_retries):
                    continue
                if event.retry().is_err():
                    continue
                saved = await self.repository.update(event)
                if saved.is_err():
                    logger.error(f"Could not requeue outbox event {event.id}: {saved.error.value}")
                    continue
                requeued += 1

        if requeued:
            record_counter("outbox_requeued_total", requeued)
            logger.info(f"Requeued {requeued} failed outbox events")
        return requeued

    async def get_stats(self) -> Result[Dict[str, int], RepositoryError]:
        """Outbox event count per status."""
        return await self.repository.count_by_status()

    async def health_check(self) -> Dict[str, Any]:
        """Return health status for monitoring."""
        connected = self.publisher.is_connected()
        return {
            "status": "healthy" if self._running and connected else "unhealthy",
            "running": self._running,
            "publisher_connected": connected,
            "ticks": self._ticks,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "last_error": self._last_error,
        }


# Global processor instance
_processor: Optional[OutboxProcessor] = None


async def start_outbox_processor(
    repository: OutboxEventRepository,
    publisher: MessagePublisher,
    config: Optional[OutboxProcessorConfig] = None,
) -> OutboxProcessor:
    """Start the global outbox processor."""
    global _processor

    if _processor is None:
        _processor = OutboxProcessor(repository, publisher, config)

    await _processor.start()
    return _processor


async def stop_outbox_processor() -> None:
    """Stop the global outbox processor."""
    global _processor
    if _processor:
        await _processor.stop()
        _processor = None


def get_outbox_processor() -> Optional[OutboxProcessor]:
    """Get the global outbox processor instance."""
    return _processor
