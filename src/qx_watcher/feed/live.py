"""Client-held live event list fed by periodic polling and a push stream."""

import asyncio
import logging
from typing import Callable, Iterable

from ..api.events_api import EventsApiClient
from ..api.websocket import InsertionStreamClient
from ..events import CanonicalEvent

logger = logging.getLogger(__name__)

InsertionCallback = Callable[[CanonicalEvent], None]


def _commit_key(event: CanonicalEvent) -> int:
    # Store ids are assigned in commit order
    return event.id if event.id is not None else -1


class EventFeed:
    """
    Bounded newest-first list of events, deduplicated by event id.

    Pushed insertions and periodic re-fetches both feed the same list. Each
    event is surfaced to insertion subscribers at most once, in commit order.
    A re-fetched event whose content changed replaces the held copy in place
    without being surfaced again.
    """

    def __init__(self, limit: int = 100):
        if limit < 1:
            raise ValueError("Feed limit must be at least 1")
        self.limit = limit
        self._events: list[CanonicalEvent] = []
        # Ids below the floor were evicted (or never fit) and are not re-surfaced
        self._floor: int | None = None
        self._subscribers: list[InsertionCallback] = []
        self._seeded = False

    @property
    def events(self) -> list[CanonicalEvent]:
        """Current list, newest first (a copy)."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def subscribe_to_insertions(self, callback: InsertionCallback) -> Callable[[], None]:
        """Call callback once per newly surfaced event; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def push(self, event: CanonicalEvent) -> bool:
        """
        Merge one pushed insertion.

        Returns:
            True if the event was new and surfaced
        """
        return bool(self._merge([event], notify=True))

    def apply_snapshot(self, events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
        """
        Merge the result of a periodic re-fetch.

        The first snapshot seeds the list without notifying subscribers.

        Returns:
            Events that were not in the feed before, oldest first
        """
        notify = self._seeded
        self._seeded = True
        return self._merge(events, notify=notify)

    def _merge(self, incoming: Iterable[CanonicalEvent], notify: bool) -> list[CanonicalEvent]:
        positions = {event.id: i for i, event in enumerate(self._events)}
        fresh = []
        fresh_ids = set()

        for event in incoming:
            if event.id is None or event.id in fresh_ids:
                continue
            if event.id in positions:
                # A merge upsert may have changed a row we already hold
                index = positions[event.id]
                if self._events[index] != event:
                    self._events[index] = event
                continue
            if self._floor is not None and event.id < self._floor:
                # Already evicted, or older than everything the list can hold
                continue
            fresh_ids.add(event.id)
            fresh.append(event)

        if not fresh:
            return []

        fresh.sort(key=_commit_key)
        merged = sorted([*self._events, *fresh], key=_commit_key, reverse=True)
        if len(merged) > self.limit:
            self._floor = merged[self.limit - 1].id
        self._events = merged[: self.limit]

        if notify:
            for event in fresh:
                for callback in list(self._subscribers):
                    try:
                        callback(event)
                    except Exception as e:
                        logger.error(f"Insertion subscriber failed: {e}", exc_info=True)

        return fresh


class LiveFeed:
    """
    Keeps an EventFeed fresh from the events API and the insertion stream.

    Polling and the stream run as independent tasks; the feed reconciles
    their results. After stop() any in-flight result is discarded.
    """

    def __init__(
        self,
        api: EventsApiClient,
        stream: InsertionStreamClient | None = None,
        limit: int = 100,
        poll_interval: float = 30.0,
    ):
        self.api = api
        self.stream = stream
        self.poll_interval = poll_interval
        self.feed = EventFeed(limit=limit)
        self.last_error: str | None = None
        self._active = False
        self._tasks: list[asyncio.Task] = []

        if self.stream:
            self.stream.on_event = self._on_stream_event

    @property
    def active(self) -> bool:
        return self._active

    def subscribe_to_insertions(self, callback: InsertionCallback) -> Callable[[], None]:
        return self.feed.subscribe_to_insertions(callback)

    async def start(self):
        """Load the first snapshot and start polling and streaming."""
        self._active = True
        await self.refresh()
        self._tasks.append(asyncio.create_task(self._poll_loop()))
        if self.stream:
            self._tasks.append(asyncio.create_task(self.stream.connect()))

    async def stop(self):
        """Cancel timers and the subscription."""
        self._active = False
        if self.stream:
            await self.stream.disconnect()

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Feed task failed: {e}")
        self._tasks.clear()

    async def refresh(self) -> bool:
        """Fetch the newest events once; failures are recorded, not raised."""
        try:
            events = await self.api.list_recent(self.feed.limit)
        except Exception as e:
            self.last_error = str(e)
            logger.warning(f"Event fetch failed, retrying in {self.poll_interval}s: {e}")
            return False

        if not self._active:
            return False

        self.last_error = None
        fresh = self.feed.apply_snapshot(events)
        if fresh:
            logger.debug(f"Poll surfaced {len(fresh)} new events")
        return True

    async def _poll_loop(self):
        while self._active:
            await asyncio.sleep(self.poll_interval)
            if self._active:
                await self.refresh()

    async def _on_stream_event(self, event: CanonicalEvent):
        if not self._active:
            return
        self.feed.push(event)
