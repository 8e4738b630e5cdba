"""Welcome buyer airdrop rule - a wallet's first qualifying purchase of a token."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ...events import CanonicalEvent
from ..amounts import parse_amount
from ..engine import Alert

logger = logging.getLogger(__name__)


@dataclass
class WelcomeAirdropConfig:
    """Configuration for the welcome buyer airdrop."""

    token: str = "QUBIC"
    min_purchase: int = 100
    airdrop_amount: int = 50
    enabled: bool = True
    channels: list[str] = field(default_factory=list)


class WelcomeBuyerDetector:
    """
    Raises an airdrop candidate the first time a wallet buys the token.

    Only the first bid counts: a first bid below min_purchase still marks the
    wallet as a known buyer.
    """

    ALERT_TYPE = "welcome_airdrop"

    def __init__(self, config: WelcomeAirdropConfig):
        self.config = config
        self._buyers: set[str] = set()

    def _is_purchase(self, event: CanonicalEvent) -> bool:
        return event.category == "bid" and event.token == self.config.token.upper()

    def observe(self, event: CanonicalEvent):
        if self._is_purchase(event) and event.source_id:
            self._buyers.add(event.source_id)

    async def analyze(self, event: CanonicalEvent) -> Alert | None:
        if not self.config.enabled or not self._is_purchase(event):
            return None

        address = event.source_id
        if not address or address in self._buyers:
            return None
        self._buyers.add(address)

        amount = parse_amount(event.amount)
        if amount < self.config.min_purchase:
            return None

        logger.info(
            f"Airdrop candidate {address[:10]}...: first purchase of "
            f"{amount:,} {event.token}"
        )

        return Alert(
            created_at=datetime.now(),
            alert_type=self.ALERT_TYPE,
            kind="airdrop",
            title="Welcome Buyer Airdrop",
            wallet_address=address,
            token=event.token,
            amount=amount,
            tx_id=event.tx_id,
            event_id=event.id,
            channels=list(self.config.channels),
            details={"airdrop_amount": self.config.airdrop_amount},
        )
