"""In-process fan-out of committed event insertions."""

import asyncio
import logging

from ..events import CanonicalEvent

logger = logging.getLogger(__name__)


class InsertionBroadcaster:
    """
    Delivers newly inserted events to every subscriber queue.

    Each subscriber receives events in the order they were published, which
    is the store's commit order.
    """

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        """Register a subscriber and return its queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Insertion subscriber added ({len(self._subscribers)} active)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        """Remove a subscriber queue."""
        self._subscribers.discard(queue)
        logger.debug(f"Insertion subscriber removed ({len(self._subscribers)} active)")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: CanonicalEvent):
        """Queue an inserted event for every subscriber."""
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Subscriber queue full, dropping event {event.id} for that subscriber"
                )
