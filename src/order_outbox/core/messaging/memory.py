"""
In-memory message publisher for tests and local runs.
"""

import logging
from typing import List, Set, Tuple

from ..errors import DispatchError
from ..result import Err, Ok, Result
from .publisher import MessagePublisher, OutboxMessage

logger = logging.getLogger(__name__)


class InMemoryMessagePublisher(MessagePublisher):
    """
    Records published messages instead of sending them.

    Failures can be injected for the next N publishes (fail_next) or for
    specific event ids (fail_event) until cleared.
    """

    def __init__(self):
        self.published: List[Tuple[str, OutboxMessage]] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._connected = False
        self._fail_next = 0
        self._failing_events: Set[str] = set()

    async def connect(self) -> None:
        self.connect_calls += 1
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def fail_next(self, count: int = 1) -> None:
        self._fail_next += count

    def fail_event(self, event_id: str) -> None:
        self._failing_events.add(str(event_id))

    def clear_failures(self) -> None:
        self._fail_next = 0
        self._failing_events.clear()

    async def publish(self, topic: str, message: OutboxMessage) -> Result[None, DispatchError]:
        if not self._connected:
            return Err(DispatchError.NOT_CONNECTED)

        if self._fail_next > 0:
            self._fail_next -= 1
            return Err(DispatchError.PUBLISH_FAILED)

        if message.event_id in self._failing_events:
            return Err(DispatchError.PUBLISH_FAILED)

        self.published.append((topic, message))
        logger.debug(f"Recorded event {message.event_id} on {topic}")
        return Ok()

    def messages_for(self, topic: str) -> List[OutboxMessage]:
        return [message for published_topic, message in self.published if published_topic == topic]

    @property
    def published_event_ids(self) -> List[str]:
        return [message.event_id for _, message in self.published]
