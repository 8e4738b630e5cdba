"""Whale trade detector - flags whale wallets buying or selling heavily in a window."""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime

from ...events import CanonicalEvent
from ..amounts import parse_amount
from ..classifier import WhaleClassifier
from ..engine import Alert

logger = logging.getLogger(__name__)


MINUTE_MS = 60 * 1000


@dataclass
class WhaleTradeConfig:
    """Configuration for one whale buy or sell rule."""

    name: str  # e.g. "Whale Buy Alert"
    category: str  # "bid" (buy) or "ask" (sell)
    token: str = "QUBIC"
    min_amount: int = 10_000  # Window volume must exceed this
    window_minutes: int = 60
    whale_lookback_minutes: int = 24 * 60  # How far back a whale-sized event counts
    history_per_wallet: int = 500
    enabled: bool = True
    channels: list[str] = field(default_factory=list)


class WhaleTradeDetector:
    """
    Detects whale wallets whose order volume in a rolling window exceeds a limit.

    This detector flags events where:
    1. The event is a bid (buy) or ask (sell) for the configured token
    2. The wallet is a whale: at least one of its events within the lookback
       is whale-sized under the current thresholds
    3. The wallet's volume for that side within the window exceeds min_amount

    After an alert the wallet's window starts over. History older than both
    the window and the lookback is dropped, along with wallets left empty.
    """

    ALERT_TYPE = "whale_trade"

    def __init__(self, config: WhaleTradeConfig, classifier: WhaleClassifier):
        self.config = config
        self.classifier = classifier
        self._history: dict[str, deque[CanonicalEvent]] = defaultdict(
            lambda: deque(maxlen=config.history_per_wallet)
        )
        self._window_starts: dict[str, int] = {}
        self._latest = 0
        self._last_sweep = 0

    @property
    def tracked_wallets(self) -> int:
        return len(self._history)

    @property
    def _retention_ms(self) -> int:
        return max(self.config.window_minutes, self.config.whale_lookback_minutes) * MINUTE_MS

    def observe(self, event: CanonicalEvent):
        """Record an event in its wallet's history and expire old history."""
        if not event.source_id or event.timestamp is None:
            return

        self._history[event.source_id].append(event)
        self._latest = max(self._latest, event.timestamp)
        cutoff = self._latest - self._retention_ms

        self._prune(event.source_id, cutoff)
        if self._latest - self._last_sweep >= self._retention_ms:
            for address in list(self._history):
                self._prune(address, cutoff)
            self._last_sweep = self._latest

    def _prune(self, address: str, cutoff: int):
        history = self._history[address]
        while history and history[0].timestamp < cutoff:
            history.popleft()
        if not history:
            del self._history[address]
            self._window_starts.pop(address, None)

    def _window_volume(self, address: str, now: int) -> int:
        since = max(
            now - self.config.window_minutes * MINUTE_MS,
            self._window_starts.get(address, 0),
        )
        return sum(
            parse_amount(e.amount)
            for e in self._history.get(address, ())
            if e.category == self.config.category
            and e.token == self.config.token.upper()
            and e.timestamp >= since
        )

    async def analyze(self, event: CanonicalEvent) -> Alert | None:
        self.observe(event)

        if not self.config.enabled:
            return None
        if event.category != self.config.category or event.token != self.config.token.upper():
            return None
        if event.timestamp is None:
            return None

        address = event.source_id
        if address not in self.classifier.whale_wallets_among(self._history.get(address, ())):
            return None

        volume = self._window_volume(address, event.timestamp)
        if volume <= self.config.min_amount:
            logger.debug(
                f"Whale {address[:10]}... {self.config.category} volume {volume:,} "
                f"within limit of {self.config.min_amount:,}"
            )
            return None

        self._window_starts[address] = event.timestamp + 1

        side = "bought" if self.config.category == "bid" else "sold"
        logger.info(
            f"ALERT: Whale {address[:10]}... {side} {volume:,} {event.token} "
            f"in {self.config.window_minutes}m"
        )

        return Alert(
            created_at=datetime.now(),
            alert_type=self.ALERT_TYPE,
            kind="alert",
            title=self.config.name,
            wallet_address=address,
            token=event.token,
            amount=volume,
            tx_id=event.tx_id,
            event_id=event.id,
            channels=list(self.config.channels),
            details={
                "side": self.config.category,
                "window_minutes": self.config.window_minutes,
                "min_amount": self.config.min_amount,
            },
        )
