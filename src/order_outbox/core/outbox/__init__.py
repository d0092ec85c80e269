"""
Outbox Dispatcher

Drains the outbox ledger to the message bus.

Usage:
    from order_outbox.core.outbox import OutboxProcessor, OutboxProcessorConfig

    processor = OutboxProcessor(outbox_repository, publisher, OutboxProcessorConfig())
    await processor.start()
"""

from .config import OutboxProcessorConfig
from .processor import (
    BatchReport,
    EventOutcome,
    OutboxProcessor,
    get_outbox_processor,
    start_outbox_processor,
    stop_outbox_processor,
)
from .dlq import DLQEntry, DLQManager
from .lifecycle import is_outbox_processor_enabled, outbox_lifespan

__all__ = [
    "OutboxProcessorConfig",
    "BatchReport",
    "EventOutcome",
    "OutboxProcessor",
    "get_outbox_processor",
    "start_outbox_processor",
    "stop_outbox_processor",
    "DLQEntry",
    "DLQManager",
    "is_outbox_processor_enabled",
    "outbox_lifespan",
]
