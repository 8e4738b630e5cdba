"""Configuration loader for QX Watcher."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    webhook_path: str = "/qx-webhook"


@dataclass
class DatabaseConfig:
    path: str = "data/qx_events.db"


@dataclass
class IngestConfig:
    conflict_policy: str = "merge"  # merge | reject
    batch_mode: str = "abort"  # abort | continue


@dataclass
class FeedConfig:
    api_base: str = "http://localhost:8000"
    websocket_url: str = "ws://localhost:8000/ws/events"
    limit: int = 100
    poll_interval_seconds: float = 30.0
    reconnect_delay_seconds: float = 5.0


@dataclass
class WhaleTradeRuleConfig:
    name: str
    category: str
    token: str = "QUBIC"
    min_amount: int = 10_000
    window_minutes: int = 60
    whale_lookback_minutes: int = 24 * 60
    enabled: bool = True
    channels: list[str] = field(default_factory=list)


def _default_whale_trade_rules() -> list[WhaleTradeRuleConfig]:
    return [
        WhaleTradeRuleConfig(
            name="Whale Buy Alert",
            category="bid",
            min_amount=10_000,
            channels=["telegram", "discord"],
        ),
        WhaleTradeRuleConfig(
            name="Whale Sell Alert",
            category="ask",
            min_amount=5_000,
            channels=["telegram", "discord", "x"],
        ),
    ]


@dataclass
class WelcomeAirdropRuleConfig:
    token: str = "QUBIC"
    min_purchase: int = 100
    airdrop_amount: int = 50
    enabled: bool = True
    channels: list[str] = field(default_factory=list)


@dataclass
class DetectionConfig:
    default_threshold: int = 1_000_000
    settings_file: str = "data/settings.json"
    whale_event_channels: list[str] = field(default_factory=list)
    whale_trade_rules: list[WhaleTradeRuleConfig] = field(
        default_factory=_default_whale_trade_rules
    )
    welcome_airdrop: WelcomeAirdropRuleConfig = field(
        default_factory=WelcomeAirdropRuleConfig
    )


@dataclass
class NotificationsConfig:
    timeout_seconds: float = 10.0
    discord_username: str = "QX Dashboard"
    telegram_api_base: str = "https://api.telegram.org"


@dataclass
class RpcConfig:
    base_url: str = "https://rpc.qubic.org"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "logs/alerts.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _detection_config(raw: dict) -> DetectionConfig:
    raw = dict(raw)
    if "whale_trade_rules" in raw:
        raw["whale_trade_rules"] = [
            WhaleTradeRuleConfig(**rule) for rule in raw["whale_trade_rules"] or []
        ]
    if "welcome_airdrop" in raw:
        raw["welcome_airdrop"] = WelcomeAirdropRuleConfig(**(raw["welcome_airdrop"] or {}))
    return DetectionConfig(**raw)


def parse_config(raw: dict | None) -> Config:
    """Build a Config from a decoded YAML mapping; missing sections use defaults."""
    raw = raw or {}
    return Config(
        server=ServerConfig(**raw.get("server", {})),
        database=DatabaseConfig(**raw.get("database", {})),
        ingest=IngestConfig(**raw.get("ingest", {})),
        feed=FeedConfig(**raw.get("feed", {})),
        detection=_detection_config(raw.get("detection", {})),
        notifications=NotificationsConfig(**raw.get("notifications", {})),
        rpc=RpcConfig(**raw.get("rpc", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
    )


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    return parse_config(raw)
