"""Derived aggregates and console output."""

from .aggregates import (
    ActivityBucket,
    KPIStats,
    WalletStats,
    activity_buckets,
    compute_kpi_stats,
    filter_events,
    top_wallets_by_volume,
    unique_tokens,
    wallet_rollups,
)
from .dashboard import print_events_table, print_stats, print_wallet_analysis

__all__ = [
    "ActivityBucket",
    "KPIStats",
    "WalletStats",
    "activity_buckets",
    "compute_kpi_stats",
    "filter_events",
    "top_wallets_by_volume",
    "unique_tokens",
    "wallet_rollups",
    "print_events_table",
    "print_stats",
    "print_wallet_analysis",
]
