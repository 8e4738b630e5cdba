"""Detection rules."""

from .welcome_buyer import WelcomeAirdropConfig, WelcomeBuyerDetector
from .whale_event import WhaleEventConfig, WhaleEventDetector
from .whale_trade import WhaleTradeConfig, WhaleTradeDetector

__all__ = [
    "WelcomeAirdropConfig",
    "WelcomeBuyerDetector",
    "WhaleEventConfig",
    "WhaleEventDetector",
    "WhaleTradeConfig",
    "WhaleTradeDetector",
]
