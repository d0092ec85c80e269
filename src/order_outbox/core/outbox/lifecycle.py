"""
Outbox Lifespan

Runs the global outbox processor for as long as a host process is up. Only
one instance may dispatch against a ledger, so every other instance sets
OUTBOX_PROCESSOR_ENABLED=false.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ..domain.repositories import OutboxEventRepository
from ..messaging.publisher import MessagePublisher
from .config import OutboxProcessorConfig
from .processor import OutboxProcessor, start_outbox_processor, stop_outbox_processor

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def is_outbox_processor_enabled() -> bool:
    return os.getenv("OUTBOX_PROCESSOR_ENABLED", "true").strip().lower() in _TRUTHY


@asynccontextmanager
async def outbox_lifespan(
    repository: OutboxEventRepository,
    publisher: MessagePublisher,
    config: Optional[OutboxProcessorConfig] = None,
) -> AsyncIterator[Optional[OutboxProcessor]]:
    """
    Yield the running processor, or None on an instance with dispatch disabled.

    Usage:
        async with outbox_lifespan(repository, publisher) as processor:
            await shutdown.wait()
    """
    if not is_outbox_processor_enabled():
        logger.info("Outbox dispatch disabled on this instance")
        yield None
        return

    processor = await start_outbox_processor(repository, publisher, config)
    try:
        yield processor
    finally:
        await stop_outbox_processor()
