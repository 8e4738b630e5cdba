"""Detection engine - orchestrates all alert and airdrop rules."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from ..events import CanonicalEvent

logger = logging.getLogger(__name__)


@dataclass
class Alert:
    """An alert or airdrop candidate raised by a detector."""

    created_at: datetime
    alert_type: str
    kind: str  # "alert" or "airdrop"
    title: str
    wallet_address: str
    token: str
    amount: int
    tx_id: str | None = None
    event_id: int | None = None
    channels: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    @property
    def message(self) -> str:
        """Rendered notification body."""
        wallet = f"{self.wallet_address[:4]}...{self.wallet_address[-4:]}"
        return f"{self.title}: {wallet} {self.amount:,} {self.token}"


class Detector(Protocol):
    """Protocol for detection rules."""

    ALERT_TYPE: str

    async def analyze(self, event: CanonicalEvent) -> Alert | None:
        """Analyze an event and return an alert if the rule matches."""
        ...


class DetectionEngine:
    """
    Runs each detector against incoming events and collects the alerts.

    A failing detector is logged and skipped; the others still run.
    """

    def __init__(self, detectors: list[Detector] | None = None):
        self.detectors: list[Detector] = detectors or []
        self._event_count = 0
        self._alert_count = 0

    def add_detector(self, detector: Detector):
        """Add a detector to the engine."""
        self.detectors.append(detector)
        logger.info(f"Added detector: {detector.ALERT_TYPE}")

    def prime(self, events: list[CanonicalEvent]):
        """
        Let stateful detectors learn from already-known events, oldest first,
        without raising alerts.
        """
        for event in sorted(events, key=lambda e: e.id or 0):
            for detector in self.detectors:
                observe = getattr(detector, "observe", None)
                if observe:
                    observe(event)

    async def process_event(self, event: CanonicalEvent) -> list[Alert]:
        """
        Process an event through all detectors.

        Args:
            event: The event to analyze

        Returns:
            List of alerts generated (may be empty)
        """
        self._event_count += 1
        alerts: list[Alert] = []

        for detector in self.detectors:
            try:
                alert = await detector.analyze(event)
                if alert:
                    alerts.append(alert)
                    self._alert_count += 1

            except Exception as e:
                logger.error(
                    f"Error in detector {detector.ALERT_TYPE}: {e}",
                    exc_info=True,
                )

        return alerts

    @property
    def stats(self) -> dict:
        """Get engine statistics."""
        return {
            "events_processed": self._event_count,
            "alerts_generated": self._alert_count,
            "detectors_active": len(self.detectors),
        }
