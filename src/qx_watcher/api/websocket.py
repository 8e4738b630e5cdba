"""WebSocket client for the event store's insertion stream."""

import asyncio
import json
import logging
from typing import Awaitable, Callable

import websockets
from websockets.asyncio.client import ClientConnection

from ..events import CanonicalEvent

logger = logging.getLogger(__name__)


EventCallback = Callable[[CanonicalEvent], Awaitable[None]]


class InsertionStreamClient:
    """Client that receives one message per newly committed event."""

    PING_INTERVAL = 5  # seconds

    def __init__(
        self,
        url: str = "ws://localhost:8000/ws/events",
        on_event: EventCallback | None = None,
        on_connect: Callable[[], Awaitable[None]] | None = None,
        on_disconnect: Callable[[], Awaitable[None]] | None = None,
        reconnect_delay: float = 5.0,
    ):
        self.url = url
        self.on_event = on_event
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.reconnect_delay = reconnect_delay
        self._ws: ClientConnection | None = None
        self._running = False
        self._ping_task: asyncio.Task | None = None

    async def connect(self):
        """Connect to the insertion stream and listen, reconnecting on failure."""
        self._running = True

        while self._running:
            try:
                logger.info(f"Connecting to {self.url}...")

                async with websockets.connect(
                    self.url,
                    ping_interval=None,  # We'll handle pings manually
                ) as ws:
                    self._ws = ws
                    logger.info("Connected to insertion stream")

                    if self.on_connect:
                        await self.on_connect()

                    # Start ping task
                    self._ping_task = asyncio.create_task(self._ping_loop())

                    # Listen for messages
                    await self._listen()

            except websockets.ConnectionClosed as e:
                logger.warning(f"WebSocket connection closed: {e}")
            except Exception as e:
                # Refused handshakes (e.g. a proxy answering 503) are retried too
                logger.error(f"WebSocket error: {e}")
            finally:
                if self._ping_task:
                    self._ping_task.cancel()
                    try:
                        await self._ping_task
                    except asyncio.CancelledError:
                        pass

                if self.on_disconnect:
                    await self.on_disconnect()

                self._ws = None

            if self._running:
                logger.info(f"Reconnecting in {self.reconnect_delay} seconds...")
                await asyncio.sleep(self.reconnect_delay)

    async def disconnect(self):
        """Disconnect from the WebSocket."""
        self._running = False
        if self._ws:
            await self._ws.close()

    async def _ping_loop(self):
        """Send periodic pings to keep connection alive."""
        while self._running and self._ws:
            try:
                await asyncio.sleep(self.PING_INTERVAL)
                if self._ws:
                    await self._ws.ping()
            except Exception as e:
                logger.debug(f"Ping error: {e}")
                break

    async def _listen(self):
        """Listen for incoming messages."""
        if not self._ws:
            return

        async for message in self._ws:
            try:
                await self.handle_message(message)
            except Exception as e:
                logger.error(f"Error handling message: {e}")

    async def handle_message(self, raw_message: str | bytes):
        """Parse an insertion message and hand the event to the callback."""
        try:
            data = json.loads(raw_message)
        except json.JSONDecodeError:
            logger.debug(f"Non-JSON message: {raw_message[:100]!r}")
            return

        if not isinstance(data, dict) or data.get("type") != "insert" or not self.on_event:
            return

        try:
            event = CanonicalEvent.from_dict(data.get("event") or {})
        except TypeError as e:
            logger.error(f"Error parsing event: {e}, payload: {data}")
            return

        await self.on_event(event)
