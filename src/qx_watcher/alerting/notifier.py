"""Outbound notification delivery - Telegram, Discord and the relay webhook."""

import logging
from dataclasses import dataclass, field

import httpx

from ..settings import RecentNotification, SettingsStore

logger = logging.getLogger(__name__)

CHANNELS = ("telegram", "discord", "x")

TEST_MESSAGE = "🔔 QX Dashboard Test - Connection successful!"


@dataclass
class DeliveryReport:
    """Per-channel outcome of one send."""

    delivered: dict[str, bool] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.delivered) and all(self.delivered.values())

    def record(self, channel: str, ok: bool, error: str | None = None):
        self.delivered[channel] = ok
        if error:
            self.errors[channel] = error


class Notifier:
    """
    Sends rendered messages to the configured channels.

    Telegram goes to the Bot API directly, Discord to its incoming webhook,
    and X through the relay webhook. Delivery never raises: each channel's
    result is a boolean in the report, with a reason when it failed.
    """

    def __init__(
        self,
        settings: SettingsStore,
        timeout: float = 10.0,
        discord_username: str = "QX Dashboard",
        telegram_api_base: str = "https://api.telegram.org",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.discord_username = discord_username
        self.telegram_api_base = telegram_api_base.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def send(
        self,
        kind: str,
        title: str,
        message: str,
        channels: list[str],
    ) -> DeliveryReport:
        """
        Deliver a message to each requested channel and record it in history.

        Args:
            kind: "alert" or "airdrop"
            title: Short headline
            message: Rendered body text
            channels: Any of "telegram", "discord", "x"
        """
        report = DeliveryReport()
        if not channels:
            report.errors["*"] = "Please select at least one connected channel."
            return report

        for channel in channels:
            ok, error = await self._deliver(channel, title, message)
            report.record(channel, ok, error)
            if not ok:
                logger.warning(f"{channel} delivery failed: {error}")

        self.settings.add_recent_notification(
            RecentNotification(
                type=kind,
                title=title,
                message=message,
                channels=[c.capitalize() for c in channels],
                success=report.success,
            )
        )
        return report

    async def test_channel(self, channel: str) -> DeliveryReport:
        """Send a test message to one channel without recording it."""
        report = DeliveryReport()
        ok, error = await self._deliver(channel, "Test Connection", TEST_MESSAGE)
        report.record(channel, ok, error)
        return report

    async def _deliver(self, channel: str, title: str, message: str) -> tuple[bool, str | None]:
        try:
            if channel == "telegram":
                return await self._send_telegram(title, message)
            if channel == "discord":
                return await self._send_discord(title, message)
            return await self._send_relay(channel, title, message)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return False, f"{channel} request failed: {e}"

    async def _send_telegram(self, title: str, message: str) -> tuple[bool, str | None]:
        credentials = self.settings.telegram
        if not credentials or not credentials.configured:
            return False, "Telegram bot token and chat id are not configured"

        response = await self._client.post(
            f"{self.telegram_api_base}/bot{credentials.telegram_token}/sendMessage",
            json={
                "chat_id": credentials.telegram_chat_id,
                "text": f"{title}\n\n{message}",
            },
        )
        if response.is_success:
            return True, None
        return False, f"Telegram returned HTTP {response.status_code}"

    async def _send_discord(self, title: str, message: str) -> tuple[bool, str | None]:
        credentials = self.settings.discord
        if not credentials or not credentials.configured:
            return False, "Discord webhook URL is not configured"

        response = await self._client.post(
            credentials.discord_webhook_url,
            json={
                "content": f"**{title}**\n{message}",
                "username": self.discord_username,
            },
        )
        if response.is_success:
            return True, None
        return False, f"Discord returned HTTP {response.status_code}"

    async def _send_relay(self, source: str, title: str, message: str) -> tuple[bool, str | None]:
        """
        Forward through the relay webhook, which holds the channel integration.

        Used for X and for any channel without a direct integration.
        """
        url = self.settings.relay_webhook_url
        if not url:
            return False, "Please set the relay webhook URL in settings first"

        credentials = {}
        if source == "x":
            x = self.settings.x
            if not x or not x.configured:
                return False, "X API credentials are not configured"
            credentials = {
                "xApiKey": x.x_api_key,
                "xApiSecret": x.x_api_secret,
                "xAccessToken": x.x_access_token,
                "xAccessSecret": x.x_access_secret,
            }

        response = await self._client.post(
            url,
            json={
                "source": source,
                "title": title,
                "credentials": credentials,
                "message": message,
            },
        )
        if response.is_success:
            return True, None
        return False, f"Relay returned HTTP {response.status_code}"
