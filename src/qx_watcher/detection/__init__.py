"""Whale classification, detection engine and rules."""

from .amounts import parse_amount
from .classifier import WhaleClassifier
from .engine import Alert, DetectionEngine, Detector
from .rules import (
    WelcomeAirdropConfig,
    WelcomeBuyerDetector,
    WhaleEventConfig,
    WhaleEventDetector,
    WhaleTradeConfig,
    WhaleTradeDetector,
)

__all__ = [
    "parse_amount",
    "WhaleClassifier",
    "Alert",
    "DetectionEngine",
    "Detector",
    "WelcomeAirdropConfig",
    "WelcomeBuyerDetector",
    "WhaleEventConfig",
    "WhaleEventDetector",
    "WhaleTradeConfig",
    "WhaleTradeDetector",
]
