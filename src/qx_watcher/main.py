"""Main entry point for QX Watcher."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import httpx
import uvicorn

from .alerting import AlertLogger, Notifier, setup_app_logging
from .alerting.notifier import CHANNELS
from .api import EventsApiClient, InsertionStreamClient
from .config import Config, load_config, parse_config
from .detection import (
    Alert,
    DetectionEngine,
    WelcomeAirdropConfig,
    WelcomeBuyerDetector,
    WhaleClassifier,
    WhaleEventConfig,
    WhaleEventDetector,
    WhaleTradeConfig,
    WhaleTradeDetector,
)
from .events import CanonicalEvent
from .feed import LiveFeed
from .server import create_app
from .settings import (
    DiscordCredentials,
    SettingsStore,
    TelegramCredentials,
    XCredentials,
)

logger = logging.getLogger(__name__)


class QxWatcher:
    """Follows the live event feed and runs the alert and airdrop rules on it."""

    def __init__(self, config: Config, settings: SettingsStore | None = None):
        self.config = config
        self._running = False

        self.settings = settings or SettingsStore(config.detection.settings_file)
        self.classifier = WhaleClassifier(self.settings, config.detection.default_threshold)
        self.events_api = EventsApiClient(config.feed.api_base)
        self.notifier = Notifier(
            self.settings,
            timeout=config.notifications.timeout_seconds,
            discord_username=config.notifications.discord_username,
            telegram_api_base=config.notifications.telegram_api_base,
        )
        self.alert_logger = AlertLogger(
            log_file=config.logging.file,
            log_level=config.logging.level,
            max_file_size_mb=config.logging.max_file_size_mb,
            backup_count=config.logging.backup_count,
        )

        self.engine = DetectionEngine()
        self._setup_detectors()

        stream = InsertionStreamClient(
            url=config.feed.websocket_url,
            on_connect=self._on_connect,
            on_disconnect=self._on_disconnect,
            reconnect_delay=config.feed.reconnect_delay_seconds,
        )
        self.live = LiveFeed(
            self.events_api,
            stream=stream,
            limit=config.feed.limit,
            poll_interval=config.feed.poll_interval_seconds,
        )
        self._pending: asyncio.Queue[CanonicalEvent] = asyncio.Queue()
        self._unsubscribe = self.live.subscribe_to_insertions(self._pending.put_nowait)

    def _setup_detectors(self):
        detection = self.config.detection

        self.engine.add_detector(
            WhaleEventDetector(
                WhaleEventConfig(channels=list(detection.whale_event_channels)),
                self.classifier,
            )
        )

        for rule in detection.whale_trade_rules:
            self.engine.add_detector(
                WhaleTradeDetector(
                    WhaleTradeConfig(
                        name=rule.name,
                        category=rule.category,
                        token=rule.token,
                        min_amount=rule.min_amount,
                        window_minutes=rule.window_minutes,
                        whale_lookback_minutes=rule.whale_lookback_minutes,
                        enabled=rule.enabled,
                        channels=list(rule.channels),
                    ),
                    self.classifier,
                )
            )

        airdrop = detection.welcome_airdrop
        self.engine.add_detector(
            WelcomeBuyerDetector(
                WelcomeAirdropConfig(
                    token=airdrop.token,
                    min_purchase=airdrop.min_purchase,
                    airdrop_amount=airdrop.airdrop_amount,
                    enabled=airdrop.enabled,
                    channels=list(airdrop.channels),
                )
            )
        )

    async def start(self):
        """Start the watcher."""
        logger.info("Starting QX Watcher...")

        thresholds = ", ".join(
            f"{token}={amount:,}" for token, amount in self.settings.whale_thresholds.items()
        )
        logger.info(f"Whale thresholds: {thresholds}")

        self._running = True
        await self.live.start()

        # Known events teach the stateful rules but never raise alerts
        self.engine.prime(self.live.feed.events)
        logger.info(f"Primed detectors with {len(self.live.feed)} recent events")

        while self._running:
            event = await self._pending.get()
            try:
                await self.process_event(event)
            except Exception as e:
                logger.error(f"Error processing event #{event.id}: {e}", exc_info=True)

    async def stop(self):
        """Stop the watcher gracefully."""
        logger.info("Stopping QX Watcher...")
        self._running = False

        self._unsubscribe()
        await self.live.stop()
        await self.events_api.close()
        await self.notifier.close()
        self.alert_logger.close()

        stats = self.engine.stats
        logger.info(
            f"Final stats: {stats['events_processed']} events processed, "
            f"{stats['alerts_generated']} alerts generated"
        )

    async def process_event(self, event: CanonicalEvent) -> list[Alert]:
        """Run detection on one newly surfaced event and dispatch its alerts."""
        logger.debug(
            f"Event #{event.id}: {event.procedure_type_name} {event.amount} "
            f"{event.token} from {(event.source_id or '')[:10]}..."
        )

        alerts = await self.engine.process_event(event)
        for alert in alerts:
            self.alert_logger.log_alert(alert)
            if alert.channels:
                await self.notifier.send(alert.kind, alert.title, alert.message, alert.channels)
        return alerts

    async def _on_connect(self):
        logger.info("Connected to insertion stream")
        logger.info("Listening for events...")

    async def _on_disconnect(self):
        logger.warning("Disconnected from insertion stream")


def parse_args(argv: list[str] | None = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="QX Watcher - Ingest and monitor QX exchange activity"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the webhook and read API")
    subparsers.add_parser("watch", help="Follow the live feed and raise alerts")

    thresholds = subparsers.add_parser("thresholds", help="Show or change whale thresholds")
    thresholds.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="TOKEN=AMOUNT",
        help="Set a token's whale threshold (repeatable)",
    )
    thresholds.add_argument(
        "--reset", action="store_true", help="Restore the default thresholds"
    )

    integrations = subparsers.add_parser(
        "integrations", help="Show, configure or test notification channels"
    )
    actions = integrations.add_subparsers(dest="action")

    telegram = actions.add_parser("telegram", help="Set Telegram bot credentials")
    telegram.add_argument("--token", required=True, help="Bot token from BotFather")
    telegram.add_argument("--chat-id", required=True, help="Chat or channel id")
    telegram.add_argument("--channel-name", help="Display name")

    discord = actions.add_parser("discord", help="Set the Discord webhook")
    discord.add_argument("--webhook-url", required=True, help="Incoming webhook URL")
    discord.add_argument("--channel-name", help="Display name")

    x = actions.add_parser("x", help="Set X API credentials (sent through the relay)")
    x.add_argument("--api-key", required=True)
    x.add_argument("--api-secret", required=True)
    x.add_argument("--access-token", required=True)
    x.add_argument("--access-secret", required=True)
    x.add_argument("--channel-name", help="Display name")

    relay = actions.add_parser("relay", help="Set the relay webhook URL")
    relay.add_argument("url", help="Relay webhook URL")

    clear = actions.add_parser("clear", help="Remove a channel's credentials")
    clear.add_argument("channel", choices=[*CHANNELS, "relay"])

    test = actions.add_parser("test", help="Send a test message to one channel")
    test.add_argument("channel", choices=CHANNELS)
    return parser.parse_args(argv)


def _load(args) -> Config:
    config_path = Path(args.config)
    if config_path.exists():
        config = load_config(config_path)
    elif args.config == "config.yaml":
        config = parse_config(None)
    else:
        logger.error(f"Configuration file not found: {config_path}")
        sys.exit(1)

    if args.debug:
        config.logging.level = "DEBUG"
    return config


def _parse_assignment(text: str) -> tuple[str, int]:
    token, sep, amount = text.partition("=")
    if not sep or not token.strip():
        raise ValueError(f"Expected TOKEN=AMOUNT, got {text!r}")
    return token.strip(), int(amount.replace(",", "").replace("_", ""))


def run_thresholds(args, config: Config):
    """Show, set or reset the persisted whale thresholds."""
    settings = SettingsStore(config.detection.settings_file)

    if args.reset:
        settings.reset_whale_thresholds()
        print("Whale thresholds reset to defaults")

    for assignment in args.set:
        try:
            token, amount = _parse_assignment(assignment)
            settings.set_whale_threshold(token, amount)
        except ValueError as e:
            logger.error(str(e))
            sys.exit(1)

    print()
    print(f"  {'Token':<10} {'Threshold':>16}")
    print("  " + "─" * 27)
    for token, amount in settings.whale_thresholds.items():
        print(f"  {token:<10} {amount:>16,}")
    print()


def _print_integrations(settings: SettingsStore):
    status = settings.integration_status
    print()
    print(f"  {'Channel':<10} {'Status':<16} {'Name'}")
    print("  " + "─" * 40)
    for channel in CHANNELS:
        credentials = getattr(settings, channel)
        name = (credentials.channel_name if credentials else None) or "-"
        state = "connected" if status[channel] else "not configured"
        print(f"  {channel.capitalize():<10} {state:<16} {name}")
    print(f"  {'Relay':<10} {settings.relay_webhook_url or 'not configured'}")
    print()


async def _send_test(
    settings: SettingsStore,
    config: Config,
    channel: str,
    transport: httpx.AsyncBaseTransport | None = None,
):
    notifier = Notifier(
        settings,
        timeout=config.notifications.timeout_seconds,
        discord_username=config.notifications.discord_username,
        telegram_api_base=config.notifications.telegram_api_base,
        transport=transport,
    )
    try:
        return await notifier.test_channel(channel)
    finally:
        await notifier.close()


def run_integrations(args, config: Config, transport: httpx.AsyncBaseTransport | None = None):
    """Show, set, clear or test the notification channels."""
    settings = SettingsStore(config.detection.settings_file)

    if args.action == "telegram":
        settings.set_telegram_credentials(
            TelegramCredentials(args.token, args.chat_id, args.channel_name)
        )
    elif args.action == "discord":
        settings.set_discord_credentials(DiscordCredentials(args.webhook_url, args.channel_name))
    elif args.action == "x":
        settings.set_x_credentials(
            XCredentials(
                args.api_key,
                args.api_secret,
                args.access_token,
                args.access_secret,
                args.channel_name,
            )
        )
    elif args.action == "relay":
        settings.set_relay_webhook_url(args.url)
    elif args.action == "clear":
        if args.channel == "relay":
            settings.set_relay_webhook_url("")
        else:
            getattr(settings, f"set_{args.channel}_credentials")(None)
    elif args.action == "test":
        report = asyncio.run(_send_test(settings, config, args.channel, transport))
        if report.success:
            print(f"{args.channel.capitalize()} test message sent")
            return
        print(f"{args.channel.capitalize()} test failed: {report.errors.get(args.channel)}")
        sys.exit(1)

    _print_integrations(settings)


async def run_watch(config: Config):
    """Run the watcher until SIGINT or SIGTERM."""
    watcher = QxWatcher(config)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    watcher_task = asyncio.create_task(watcher.start())

    await shutdown_event.wait()

    await watcher.stop()
    watcher_task.cancel()

    try:
        await watcher_task
    except asyncio.CancelledError:
        pass


def main(argv: list[str] | None = None):
    """Main entry point."""
    args = parse_args(argv)
    config = _load(args)
    setup_app_logging(config.logging.level)

    if args.command == "serve":
        uvicorn.run(
            create_app(config),
            host=config.server.host,
            port=config.server.port,
            log_level=config.logging.level.lower(),
        )
    elif args.command == "thresholds":
        run_thresholds(args, config)
    elif args.command == "integrations":
        run_integrations(args, config)
    else:
        try:
            asyncio.run(run_watch(config))
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
