"""Client-local mutable settings: whale thresholds, channel credentials, history.

Settings are shared by every consumer of the classifier and the notifier.
Writes go through the store's setters, which persist the changed fields and
then notify every registered listener.
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_WHALE_THRESHOLD = 1_000_000

DEFAULT_THRESHOLDS = {
    "QUBIC": 1_000_000,
    "QMINE": 500_000,
    "GARTH": 100_000,
    "MATILDA": 100_000,
    "CFB": 50_000,
    "QXMR": 10_000,
}

KNOWN_TOKENS = list(DEFAULT_THRESHOLDS)

RECENT_NOTIFICATION_LIMIT = 20


@dataclass
class TelegramCredentials:
    telegram_token: str
    telegram_chat_id: str
    channel_name: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)


@dataclass
class DiscordCredentials:
    discord_webhook_url: str
    channel_name: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.discord_webhook_url)


@dataclass
class XCredentials:
    x_api_key: str
    x_api_secret: str
    x_access_token: str
    x_access_secret: str
    channel_name: str | None = None

    @property
    def configured(self) -> bool:
        return all(
            (self.x_api_key, self.x_api_secret, self.x_access_token, self.x_access_secret)
        )


@dataclass
class RecentNotification:
    """A notification that was sent, kept for the history views."""

    type: str  # "alert" or "airdrop"
    title: str
    message: str
    channels: list[str]
    success: bool
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


SettingsListener = Callable[["SettingsStore"], None]


class SettingsStore:
    """
    Process-wide settings with explicit accessors and change listeners.

    When backed by a file, the file is the source of truth. Every read first
    picks up changes written by other processes (the watcher, the server and
    the CLI may share one file), and every write replaces only the fields it
    changed.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._thresholds: dict[str, int] = dict(DEFAULT_THRESHOLDS)
        self._telegram: TelegramCredentials | None = None
        self._discord: DiscordCredentials | None = None
        self._x: XCredentials | None = None
        self._relay_webhook_url: str = ""
        self._recent_alerts: list[RecentNotification] = []
        self._recent_airdrops: list[RecentNotification] = []
        self._listeners: list[SettingsListener] = []
        self._file_signature: tuple[int, int, int] | None = None

        self._refresh(notify=False)

    # Persistence

    def _signature(self) -> tuple[int, int, int] | None:
        # Writes replace the file, so the inode changes even when mtime does not
        try:
            stat = self.path.stat()
        except OSError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    def _read_file(self) -> dict | None:
        try:
            with open(self.path) as f:
                raw = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read settings from {self.path}: {e}")
            return None

        if not isinstance(raw, dict):
            logger.error(f"Ignoring settings in {self.path}: expected a JSON object")
            return None
        return raw

    def _refresh(self, notify: bool = True):
        """Reload from disk if the file changed since it was last read or written."""
        if not self.path:
            return
        signature = self._signature()
        if signature is None or signature == self._file_signature:
            return

        raw = self._read_file()
        self._file_signature = signature
        if raw is None:
            return

        self._apply(raw)
        logger.info(f"Loaded settings from {self.path}")
        if notify:
            self._notify()

    def _apply(self, raw: dict):
        self._thresholds = dict(DEFAULT_THRESHOLDS)
        thresholds = raw.get("whale_thresholds")
        if thresholds:
            try:
                if not isinstance(thresholds, dict):
                    raise TypeError("expected a token -> amount mapping")
                self._thresholds = self._clean_thresholds(thresholds)
            except (TypeError, ValueError) as e:
                logger.error(f"Ignoring whale thresholds in {self.path}: {e}")

        self._telegram = self._parse_credentials(raw, "telegram", TelegramCredentials)
        self._discord = self._parse_credentials(raw, "discord", DiscordCredentials)
        self._x = self._parse_credentials(raw, "x", XCredentials)

        relay = raw.get("relay_webhook_url") or ""
        if not isinstance(relay, str):
            logger.error(f"Ignoring relay webhook URL in {self.path}: expected a string")
            relay = ""
        self._relay_webhook_url = relay

        self._recent_alerts = self._parse_history(raw, "recent_alerts")
        self._recent_airdrops = self._parse_history(raw, "recent_airdrops")

    def _parse_credentials(self, raw: dict, key: str, cls):
        value = raw.get(key)
        if not value:
            return None
        if not isinstance(value, dict):
            logger.error(f"Ignoring {key} credentials in {self.path}: expected an object")
            return None
        try:
            return cls(**value)
        except TypeError as e:
            logger.error(f"Ignoring {key} credentials in {self.path}: {e}")
            return None

    def _parse_history(self, raw: dict, key: str) -> list[RecentNotification]:
        entries = raw.get(key) or []
        if not isinstance(entries, list):
            logger.error(f"Ignoring {key} in {self.path}: expected a list")
            return []

        history = []
        for entry in entries:
            try:
                history.append(RecentNotification(**entry))
            except TypeError as e:
                logger.warning(f"Skipping malformed entry in {key}: {e}")
        return history[:RECENT_NOTIFICATION_LIMIT]

    def to_dict(self) -> dict:
        return {
            "whale_thresholds": dict(self._thresholds),
            "telegram": asdict(self._telegram) if self._telegram else None,
            "discord": asdict(self._discord) if self._discord else None,
            "x": asdict(self._x) if self._x else None,
            "relay_webhook_url": self._relay_webhook_url,
            "recent_alerts": [asdict(n) for n in self._recent_alerts],
            "recent_airdrops": [asdict(n) for n in self._recent_airdrops],
        }

    def _save(self, *fields: str):
        """Write the named fields into the current file contents, atomically."""
        if not self.path:
            return

        raw = self._read_file() or {}
        current = self.to_dict()
        for name in fields:
            raw[name] = current[name]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(raw, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        # Fields written by others since the last refresh come back with raw
        self._apply(raw)
        self._file_signature = self._signature()

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Settings listener failed: {e}", exc_info=True)

    def _changed(self, *fields: str):
        self._save(*fields)
        self._notify()

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Whale thresholds

    @staticmethod
    def _clean_thresholds(thresholds: dict) -> dict[str, int]:
        cleaned = {}
        for token, amount in thresholds.items():
            token = str(token).strip().upper()
            if not token:
                continue
            amount = int(amount)
            if amount < 0:
                raise ValueError(f"Threshold for {token} must be non-negative")
            cleaned[token] = amount
        return cleaned

    @property
    def whale_thresholds(self) -> dict[str, int]:
        """Current token -> threshold map (a copy)."""
        self._refresh()
        return dict(self._thresholds)

    def set_whale_thresholds(self, thresholds: dict[str, int]):
        """Replace the threshold map, persist it, and notify listeners."""
        cleaned = self._clean_thresholds(thresholds)
        self._refresh()
        self._thresholds = cleaned
        logger.info(f"Whale thresholds updated: {self._thresholds}")
        self._changed("whale_thresholds")

    def set_whale_threshold(self, token: str, amount: int):
        """Set one token's threshold."""
        updated = self.whale_thresholds
        updated[token.strip().upper()] = amount
        self.set_whale_thresholds(updated)

    def reset_whale_thresholds(self):
        self.set_whale_thresholds(DEFAULT_THRESHOLDS)

    # Channel credentials

    @property
    def telegram(self) -> TelegramCredentials | None:
        self._refresh()
        return self._telegram

    @property
    def discord(self) -> DiscordCredentials | None:
        self._refresh()
        return self._discord

    @property
    def x(self) -> XCredentials | None:
        self._refresh()
        return self._x

    @property
    def relay_webhook_url(self) -> str:
        self._refresh()
        return self._relay_webhook_url

    def set_telegram_credentials(self, credentials: TelegramCredentials | None):
        self._refresh()
        self._telegram = credentials
        self._changed("telegram")

    def set_discord_credentials(self, credentials: DiscordCredentials | None):
        self._refresh()
        self._discord = credentials
        self._changed("discord")

    def set_x_credentials(self, credentials: XCredentials | None):
        self._refresh()
        self._x = credentials
        self._changed("x")

    def set_relay_webhook_url(self, url: str):
        self._refresh()
        self._relay_webhook_url = url.strip()
        self._changed("relay_webhook_url")

    @property
    def integration_status(self) -> dict[str, bool]:
        """Which channels have complete credentials."""
        telegram, discord, x = self.telegram, self.discord, self.x
        return {
            "telegram": bool(telegram and telegram.configured),
            "discord": bool(discord and discord.configured),
            "x": bool(x and x.configured),
        }

    # Notification history

    @property
    def recent_alerts(self) -> list[RecentNotification]:
        self._refresh()
        return list(self._recent_alerts)

    @property
    def recent_airdrops(self) -> list[RecentNotification]:
        self._refresh()
        return list(self._recent_airdrops)

    def add_recent_notification(self, notification: RecentNotification):
        """Prepend to the matching history, keeping the newest entries."""
        self._refresh()
        if notification.type == "alert":
            self._recent_alerts = [notification, *self._recent_alerts][
                :RECENT_NOTIFICATION_LIMIT
            ]
            self._changed("recent_alerts")
        else:
            self._recent_airdrops = [notification, *self._recent_airdrops][
                :RECENT_NOTIFICATION_LIMIT
            ]
            self._changed("recent_airdrops")
