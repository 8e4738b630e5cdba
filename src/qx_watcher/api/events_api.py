"""Client for the watcher's own read API - recent events, wallet events, stats."""

import httpx

from ..events import CanonicalEvent


class EventsApiClient:
    """Client for the event store's HTTP read endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def list_recent(self, limit: int = 100) -> list[CanonicalEvent]:
        """
        Fetch the most recently inserted events.

        Args:
            limit: Maximum number of events to return

        Returns:
            Events, newest insertion first
        """
        response = await self._client.get(
            f"{self.base_url}/events",
            params={"limit": limit},
        )
        response.raise_for_status()

        return [CanonicalEvent.from_dict(item) for item in response.json()]

    async def list_by_wallet(self, address: str, limit: int = 20) -> list[CanonicalEvent]:
        """Fetch events where the wallet is source or destination, newest first."""
        response = await self._client.get(
            f"{self.base_url}/events/wallet/{address}",
            params={"limit": limit},
        )
        response.raise_for_status()

        return [CanonicalEvent.from_dict(item) for item in response.json()]

    async def get_stats(self) -> dict:
        """Fetch the 24h KPI summary computed by the server."""
        response = await self._client.get(f"{self.base_url}/stats")
        response.raise_for_status()
        return response.json()
