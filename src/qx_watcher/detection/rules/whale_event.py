"""Whale event detector - flags any event at or above its token's threshold."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ...events import CanonicalEvent
from ..amounts import parse_amount
from ..classifier import WhaleClassifier
from ..engine import Alert

logger = logging.getLogger(__name__)


@dataclass
class WhaleEventConfig:
    """Configuration for the whale event detector."""

    enabled: bool = True
    channels: list[str] = field(default_factory=list)


class WhaleEventDetector:
    """Raises an alert for every event the classifier marks as whale."""

    ALERT_TYPE = "whale_event"

    def __init__(self, config: WhaleEventConfig, classifier: WhaleClassifier):
        self.config = config
        self.classifier = classifier

    async def analyze(self, event: CanonicalEvent) -> Alert | None:
        if not self.config.enabled or not self.classifier.is_whale_event(event):
            return None

        amount = parse_amount(event.amount)
        threshold = self.classifier.threshold_for(event.token)
        logger.debug(
            f"Whale event {event.tx_id}: {amount:,} {event.token} "
            f"(threshold {threshold:,})"
        )

        return Alert(
            created_at=datetime.now(),
            alert_type=self.ALERT_TYPE,
            kind="alert",
            title="Whale Detected",
            wallet_address=event.source_id,
            token=event.token,
            amount=amount,
            tx_id=event.tx_id,
            event_id=event.id,
            channels=list(self.config.channels),
            details={
                "procedure": event.procedure_type_name,
                "threshold": threshold,
                "tick_number": event.tick_number,
                "dest_id": event.dest_id,
            },
        )
