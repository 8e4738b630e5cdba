"""Dashboard aggregates folded over event collections.

Every function here is a pure function of its arguments: the events and,
where whale status matters, the classifier.
"""

import time
from dataclasses import dataclass
from typing import Iterable

from ..detection.amounts import parse_amount
from ..detection.classifier import WhaleClassifier
from ..events import CanonicalEvent
from ..settings import KNOWN_TOKENS

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
BUCKET_COUNT = 12
BUCKET_MS = 2 * HOUR_MS


@dataclass
class KPIStats:
    """Headline numbers for a set of events."""

    total_events: int
    active_wallets: int
    whales_detected: int
    total_volume: int


@dataclass
class ActivityBucket:
    """Event counts and volume for one time slot [start_ms, end_ms)."""

    start_ms: int
    end_ms: int
    total: int = 0
    bid_orders: int = 0
    ask_orders: int = 0
    transfers: int = 0
    issues: int = 0
    cancels: int = 0
    volume: int = 0


@dataclass
class WalletStats:
    """Per-wallet roll-up of source events."""

    address: str
    first_seen_at: str | None
    last_seen_at: str | None
    transaction_count: int
    latest_tick: int | None
    volume: int


_CATEGORY_FIELDS = {
    "bid": "bid_orders",
    "ask": "ask_orders",
    "transfer": "transfers",
    "issue": "issues",
    "cancel": "cancels",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def events_within(
    events: Iterable[CanonicalEvent],
    window_ms: int = DAY_MS,
    now: int | None = None,
) -> list[CanonicalEvent]:
    """Events whose timestamp falls within the window ending at now."""
    now = now_ms() if now is None else now
    since = now - window_ms
    return [e for e in events if e.timestamp is not None and e.timestamp >= since]


def total_volume(events: Iterable[CanonicalEvent]) -> int:
    return sum(parse_amount(event.amount) for event in events)


def active_wallet_count(events: Iterable[CanonicalEvent]) -> int:
    return len({event.source_id for event in events})


def whale_count(events: Iterable[CanonicalEvent], classifier: WhaleClassifier) -> int:
    """Number of whale events (event-level, not wallet-level)."""
    return sum(1 for event in events if classifier.is_whale_event(event))


def compute_kpi_stats(
    events: Iterable[CanonicalEvent], classifier: WhaleClassifier
) -> KPIStats:
    events = list(events)
    return KPIStats(
        total_events=len(events),
        active_wallets=active_wallet_count(events),
        whales_detected=whale_count(events, classifier),
        total_volume=total_volume(events),
    )


def activity_buckets(
    events: Iterable[CanonicalEvent], now: int | None = None
) -> list[ActivityBucket]:
    """
    Split the 24 hours ending at now into 12 two-hour buckets, oldest first.

    Each bucket counts events by action category and sums their volume.
    Events without a timestamp or outside the window are ignored.
    """
    now = now_ms() if now is None else now
    window_start = now - BUCKET_COUNT * BUCKET_MS
    buckets = [
        ActivityBucket(
            start_ms=window_start + i * BUCKET_MS,
            end_ms=window_start + (i + 1) * BUCKET_MS,
        )
        for i in range(BUCKET_COUNT)
    ]

    for event in events:
        if event.timestamp is None or not window_start <= event.timestamp < now:
            continue
        bucket = buckets[(event.timestamp - window_start) // BUCKET_MS]
        bucket.total += 1
        bucket.volume += parse_amount(event.amount)
        field_name = _CATEGORY_FIELDS.get(event.category)
        if field_name:
            setattr(bucket, field_name, getattr(bucket, field_name) + 1)

    return buckets


def top_wallets_by_volume(
    events: Iterable[CanonicalEvent], n: int = 5
) -> list[tuple[str, int]]:
    """Source wallets ranked by summed amount; ties keep first-seen order."""
    volumes: dict[str, int] = {}
    for event in events:
        volumes[event.source_id] = volumes.get(event.source_id, 0) + parse_amount(
            event.amount
        )
    ranked = sorted(volumes.items(), key=lambda item: item[1], reverse=True)
    return ranked[:n]


def wallet_rollups(events: Iterable[CanonicalEvent]) -> list[WalletStats]:
    """
    Group events by source wallet.

    Wallets are sorted by their latest tick, highest first.
    """
    wallets: dict[str, WalletStats] = {}

    for event in events:
        stats = wallets.get(event.source_id)
        if stats is None:
            wallets[event.source_id] = WalletStats(
                address=event.source_id,
                first_seen_at=event.created_at,
                last_seen_at=event.created_at,
                transaction_count=1,
                latest_tick=event.tick_number,
                volume=parse_amount(event.amount),
            )
            continue

        stats.transaction_count += 1
        stats.volume += parse_amount(event.amount)
        if event.tick_number is not None and (
            stats.latest_tick is None or event.tick_number > stats.latest_tick
        ):
            stats.latest_tick = event.tick_number
            stats.last_seen_at = event.created_at
        if event.created_at and (
            stats.first_seen_at is None or event.created_at < stats.first_seen_at
        ):
            stats.first_seen_at = event.created_at

    return sorted(
        wallets.values(),
        key=lambda w: w.latest_tick if w.latest_tick is not None else -1,
        reverse=True,
    )


def unique_tokens(events: Iterable[CanonicalEvent]) -> list[str]:
    """Known tokens in their fixed order, then any others alphabetically."""
    seen = {
        event.asset_name.strip().upper()
        for event in events
        if event.asset_name and event.asset_name.strip()
    }
    others = sorted(seen - set(KNOWN_TOKENS))
    return [*KNOWN_TOKENS, *others]


def filter_events(
    events: Iterable[CanonicalEvent],
    classifier: WhaleClassifier,
    query: str = "",
    token: str | None = None,
    category: str | None = None,
) -> list[CanonicalEvent]:
    """
    Filter events the way the event table does.

    Args:
        query: matched against addresses, tick number and token; the word
            "whale" also matches whale events
        token: a token symbol, or "other" for tokens outside the known set
        category: an action category, or "whale" for whale events only
    """
    query = query.strip().lower()
    results = []

    for event in events:
        if query:
            tick = str(event.tick_number or "")
            matches = (
                query in event.source_id.lower()
                or query in event.dest_id.lower()
                or query.replace(",", "") in tick
                or query in event.token.lower()
                or ("whale" in query and classifier.is_whale_event(event))
            )
            if not matches:
                continue

        if token:
            if token.lower() == "other":
                if event.token in KNOWN_TOKENS:
                    continue
            elif event.token != token.upper():
                continue

        if category:
            if category == "whale":
                if not classifier.is_whale_event(event):
                    continue
            elif event.category != category:
                continue

        results.append(event)

    return results
