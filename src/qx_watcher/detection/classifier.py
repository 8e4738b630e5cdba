"""Whale classification against per-token thresholds."""

from typing import Iterable

from ..events import CanonicalEvent
from ..settings import DEFAULT_WHALE_THRESHOLD, SettingsStore
from .amounts import parse_amount


class WhaleClassifier:
    """
    Decides whale status for (token, amount) pairs, events and wallets.

    Thresholds are read from the settings store on every call, so a
    threshold change applies immediately to every consumer.
    """

    def __init__(
        self,
        settings: SettingsStore,
        default_threshold: int = DEFAULT_WHALE_THRESHOLD,
    ):
        self.settings = settings
        self.default_threshold = default_threshold

    def threshold_for(self, token: str | None) -> int:
        """Configured threshold for a token (case-insensitive), else the default."""
        if not token:
            return self.default_threshold
        return self.settings.whale_thresholds.get(
            token.strip().upper(), self.default_threshold
        )

    def is_whale(self, token: str | None, amount: int) -> bool:
        """True when the amount reaches the token's threshold (inclusive)."""
        return amount >= self.threshold_for(token)

    def is_whale_event(self, event: CanonicalEvent) -> bool:
        return self.is_whale(event.token, parse_amount(event.amount))

    def whale_wallets_among(self, events: Iterable[CanonicalEvent]) -> set[str]:
        """Distinct source addresses with at least one whale event."""
        return {
            event.source_id
            for event in events
            if event.source_id and self.is_whale_event(event)
        }
