"""
Tests for outbound notification delivery.

All HTTP traffic goes through httpx.MockTransport.
"""

import json

import httpx
import pytest

from qx_watcher.alerting import Notifier
from qx_watcher.settings import (
    DiscordCredentials,
    SettingsStore,
    TelegramCredentials,
    XCredentials,
)


class Recorder:
    """Mock transport handler that records requests."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": True})

    def body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


def make_notifier(settings: SettingsStore, recorder: Recorder) -> Notifier:
    return Notifier(settings, transport=httpx.MockTransport(recorder))


@pytest.fixture
def configured_settings() -> SettingsStore:
    settings = SettingsStore()
    settings.set_telegram_credentials(TelegramCredentials("bot-token", "chat-1"))
    settings.set_discord_credentials(DiscordCredentials("https://discord.example/hook"))
    settings.set_x_credentials(XCredentials("key", "secret", "token", "access"))
    settings.set_relay_webhook_url("https://relay.example/notify")
    return settings


class TestNotifier:
    @pytest.mark.asyncio
    async def test_telegram_uses_bot_api(self, configured_settings):
        recorder = Recorder()
        notifier = make_notifier(configured_settings, recorder)

        report = await notifier.send("alert", "Whale Buy Alert", "body", ["telegram"])
        await notifier.close()

        assert report.success
        request = recorder.requests[0]
        assert str(request.url) == "https://api.telegram.org/botbot-token/sendMessage"
        assert recorder.body() == {"chat_id": "chat-1", "text": "Whale Buy Alert\n\nbody"}

    @pytest.mark.asyncio
    async def test_discord_webhook_payload(self, configured_settings):
        recorder = Recorder()
        notifier = make_notifier(configured_settings, recorder)

        await notifier.send("alert", "Title", "body", ["discord"])
        await notifier.close()

        assert str(recorder.requests[0].url) == "https://discord.example/hook"
        assert recorder.body() == {"content": "**Title**\nbody", "username": "QX Dashboard"}

    @pytest.mark.asyncio
    async def test_x_goes_through_relay_with_credentials(self, configured_settings):
        recorder = Recorder()
        notifier = make_notifier(configured_settings, recorder)

        await notifier.send("airdrop", "Welcome", "body", ["x"])
        await notifier.close()

        assert str(recorder.requests[0].url) == "https://relay.example/notify"
        body = recorder.body()
        assert body["source"] == "x"
        assert body["credentials"]["xApiKey"] == "key"
        assert body["message"] == "body"

    @pytest.mark.asyncio
    async def test_history_is_recorded(self, configured_settings):
        notifier = make_notifier(configured_settings, Recorder())

        await notifier.send("alert", "Title", "body", ["telegram", "discord"])
        await notifier.close()

        latest = configured_settings.recent_alerts[0]
        assert latest.channels == ["Telegram", "Discord"]
        assert latest.success

    @pytest.mark.asyncio
    async def test_partial_failure(self, configured_settings):
        recorder = Recorder(status_code=500)
        notifier = make_notifier(configured_settings, recorder)

        report = await notifier.send("alert", "Title", "body", ["discord"])
        await notifier.close()

        assert not report.success
        assert report.delivered == {"discord": False}
        assert "500" in report.errors["discord"]
        assert configured_settings.recent_alerts[0].success is False

    @pytest.mark.asyncio
    async def test_unconfigured_channels(self):
        recorder = Recorder()
        notifier = make_notifier(SettingsStore(), recorder)

        report = await notifier.send("alert", "Title", "body", ["telegram", "discord", "x"])
        await notifier.close()

        assert recorder.requests == []
        assert report.delivered == {"telegram": False, "discord": False, "x": False}
        assert report.errors["x"] == "Please set the relay webhook URL in settings first"

    @pytest.mark.asyncio
    async def test_no_channels_selected(self):
        settings = SettingsStore()
        notifier = make_notifier(settings, Recorder())

        report = await notifier.send("alert", "Title", "body", [])
        await notifier.close()

        assert not report.success
        assert "*" in report.errors
        assert settings.recent_alerts == []

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self, configured_settings):
        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        notifier = Notifier(configured_settings, transport=httpx.MockTransport(fail))
        report = await notifier.test_channel("telegram")
        await notifier.close()

        assert report.delivered == {"telegram": False}
        assert "refused" in report.errors["telegram"]

    @pytest.mark.asyncio
    async def test_malformed_url_is_reported(self):
        settings = SettingsStore()
        settings.set_discord_credentials(DiscordCredentials("https://discord.com:abc/x"))
        recorder = Recorder()
        notifier = make_notifier(settings, recorder)

        report = await notifier.send("alert", "Title", "body", ["discord"])
        await notifier.close()

        assert recorder.requests == []
        assert report.delivered == {"discord": False}
        assert "discord request failed" in report.errors["discord"]
        assert settings.recent_alerts[0].success is False
