"""
Tests for the settings store.

Tests cover:
- Threshold updates, validation and reset
- Change listeners
- Persistence to disk
- Channel integration status and notification history
"""

import json

import pytest

from qx_watcher.detection import WhaleClassifier
from qx_watcher.settings import (
    DEFAULT_THRESHOLDS,
    RECENT_NOTIFICATION_LIMIT,
    DiscordCredentials,
    RecentNotification,
    SettingsStore,
    TelegramCredentials,
    XCredentials,
)


class TestThresholds:
    def test_defaults(self):
        assert SettingsStore().whale_thresholds == DEFAULT_THRESHOLDS

    def test_returned_map_is_a_copy(self):
        store = SettingsStore()
        store.whale_thresholds["QUBIC"] = 1
        assert store.whale_thresholds["QUBIC"] == DEFAULT_THRESHOLDS["QUBIC"]

    def test_tokens_are_upper_cased(self):
        store = SettingsStore()
        store.set_whale_thresholds({" qubic ": 5, "new": 7})
        assert store.whale_thresholds == {"QUBIC": 5, "NEW": 7}

    def test_negative_threshold_rejected(self):
        store = SettingsStore()
        with pytest.raises(ValueError):
            store.set_whale_threshold("QUBIC", -1)
        assert store.whale_thresholds == DEFAULT_THRESHOLDS

    def test_reset(self):
        store = SettingsStore()
        store.set_whale_threshold("QUBIC", 1)
        store.reset_whale_thresholds()
        assert store.whale_thresholds == DEFAULT_THRESHOLDS


class TestListeners:
    def test_listeners_see_new_snapshot(self):
        store = SettingsStore()
        seen = []
        store.subscribe(lambda s: seen.append(s.whale_thresholds["QUBIC"]))

        store.set_whale_threshold("QUBIC", 42)

        assert seen == [42]

    def test_failing_listener_does_not_block_others(self):
        store = SettingsStore()
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.set_relay_webhook_url("https://relay.example")

        assert seen == [store]

    def test_unsubscribe(self):
        store = SettingsStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        store.reset_whale_thresholds()
        assert seen == []


class TestPersistence:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "settings.json"
        store = SettingsStore(path)
        store.set_whale_threshold("CFB", 1234)
        store.set_telegram_credentials(TelegramCredentials("token", "chat"))
        store.set_relay_webhook_url(" https://relay.example ")
        store.add_recent_notification(
            RecentNotification(
                type="alert", title="t", message="m", channels=["Telegram"], success=True
            )
        )

        reloaded = SettingsStore(path)

        assert reloaded.whale_thresholds["CFB"] == 1234
        assert reloaded.telegram == TelegramCredentials("token", "chat")
        assert reloaded.relay_webhook_url == "https://relay.example"
        assert [n.title for n in reloaded.recent_alerts] == ["t"]

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        assert SettingsStore(path).whale_thresholds == DEFAULT_THRESHOLDS


class TestIntegrations:
    def test_status(self):
        store = SettingsStore()
        assert store.integration_status == {"telegram": False, "discord": False, "x": False}

        store.set_discord_credentials(DiscordCredentials("https://discord.example/hook"))
        store.set_x_credentials(XCredentials("k", "s", "t", ""))

        assert store.integration_status == {"telegram": False, "discord": True, "x": False}

    def test_history_is_bounded_newest_first(self):
        store = SettingsStore()
        for i in range(RECENT_NOTIFICATION_LIMIT + 5):
            store.add_recent_notification(
                RecentNotification(
                    type="airdrop", title=str(i), message="", channels=[], success=True
                )
            )

        assert len(store.recent_airdrops) == RECENT_NOTIFICATION_LIMIT
        assert store.recent_airdrops[0].title == str(RECENT_NOTIFICATION_LIMIT + 4)
        assert store.recent_alerts == []

    def test_non_object_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2, 3]")
        assert SettingsStore(path).whale_thresholds == DEFAULT_THRESHOLDS

    def test_malformed_fields_are_ignored_individually(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps(
                {
                    "whale_thresholds": {"CFB": 7},
                    "telegram": {"bot": "unexpected"},
                    "discord": "https://discord.example/hook",
                    "relay_webhook_url": 12,
                    "recent_alerts": [{"title": "incomplete"}],
                }
            )
        )

        store = SettingsStore(path)

        assert store.whale_thresholds == {"CFB": 7}
        assert store.telegram is None
        assert store.discord is None
        assert store.relay_webhook_url == ""
        assert store.recent_alerts == []


class TestSharedFile:
    """Several processes (server, watcher, CLI) share one settings file."""

    def make_notification(self, title: str) -> RecentNotification:
        return RecentNotification(
            type="alert", title=title, message="", channels=["Discord"], success=True
        )

    def test_changes_from_another_store_are_picked_up(self, tmp_path):
        path = tmp_path / "settings.json"
        watcher_side = SettingsStore(path)
        watcher_side.add_recent_notification(self.make_notification("first"))
        classifier = WhaleClassifier(watcher_side)
        assert not classifier.is_whale("QUBIC", 5)

        cli_side = SettingsStore(path)
        cli_side.set_whale_threshold("QUBIC", 5)

        assert watcher_side.whale_thresholds["QUBIC"] == 5
        assert classifier.is_whale("QUBIC", 5)

    def test_writes_keep_fields_changed_elsewhere(self, tmp_path):
        path = tmp_path / "settings.json"
        watcher_side = SettingsStore(path)
        cli_side = SettingsStore(path)

        cli_side.set_whale_threshold("QUBIC", 5)
        cli_side.set_discord_credentials(DiscordCredentials("https://discord.example/hook"))
        watcher_side.add_recent_notification(self.make_notification("sent"))

        on_disk = SettingsStore(path)
        assert on_disk.whale_thresholds["QUBIC"] == 5
        assert on_disk.discord == DiscordCredentials("https://discord.example/hook")
        assert [n.title for n in on_disk.recent_alerts] == ["sent"]

    def test_listeners_hear_about_external_changes(self, tmp_path):
        path = tmp_path / "settings.json"
        watcher_side = SettingsStore(path)
        seen = []
        watcher_side.subscribe(lambda s: seen.append(s.whale_thresholds["CFB"]))

        SettingsStore(path).set_whale_threshold("CFB", 9)
        watcher_side.whale_thresholds

        assert seen == [9]
