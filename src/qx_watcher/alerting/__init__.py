"""Alert output: log formatting and outbound notifications."""

from .logger import AlertFormatter, AlertLogger, setup_app_logging
from .notifier import DeliveryReport, Notifier

__all__ = [
    "AlertFormatter",
    "AlertLogger",
    "setup_app_logging",
    "DeliveryReport",
    "Notifier",
]
