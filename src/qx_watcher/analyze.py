"""CLI tool to inspect QX activity and Qubic wallets."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from .analysis.aggregates import (
    HOUR_MS,
    events_within,
    filter_events,
    unique_tokens,
    wallet_rollups,
)
from .analysis.dashboard import print_events_table, print_stats, print_wallet_analysis
from .api import EventsApiClient, QubicRpcClient, WalletAnalyzer
from .config import Config, load_config, parse_config
from .detection import WhaleClassifier
from .events import ACTION_CATEGORIES
from .settings import SettingsStore

CATEGORY_CHOICES = sorted({*ACTION_CATEGORIES.values(), "other", "whale"})


async def show_stats(config: Config):
    """Print the 24h dashboard served by the read API."""
    client = EventsApiClient(config.feed.api_base)
    try:
        stats = await client.get_stats()
    finally:
        await client.close()
    print_stats(stats)


async def show_events(
    config: Config,
    query: str = "",
    token: str | None = None,
    category: str | None = None,
    limit: int = 100,
    hours: float | None = None,
):
    """Print recent events filtered the way the event table filters them."""
    client = EventsApiClient(config.feed.api_base)
    try:
        events = await client.list_recent(limit)
    finally:
        await client.close()

    if hours:
        events = events_within(events, int(hours * HOUR_MS))

    classifier = WhaleClassifier(
        SettingsStore(config.detection.settings_file), config.detection.default_threshold
    )
    matched = filter_events(events, classifier, query=query, token=token, category=category)
    print_events_table(matched, classifier, unique_tokens(events))


async def show_wallet(config: Config, address: str, limit: int):
    """Print RPC balance and assets for a wallet, plus its stored QX events."""
    rpc = QubicRpcClient(config.rpc.base_url)
    events_api = EventsApiClient(config.feed.api_base)

    try:
        print(f"\nAnalyzing {address[:10]}...", flush=True)
        analysis = await WalletAnalyzer(rpc).analyze_wallet(address)

        recent = []
        if analysis.valid:
            try:
                recent = await events_api.list_by_wallet(address, limit)
            except httpx.HTTPError as e:
                logging.warning(f"Could not load stored events for {address[:10]}...: {e}")
    finally:
        await rpc.close()
        await events_api.close()

    rollup = next((r for r in wallet_rollups(recent) if r.address == address), None)
    print_wallet_analysis(analysis, rollup, recent)


async def main_async(args):
    """Async main function."""
    log_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    config_path = Path(args.config)
    config = load_config(config_path) if config_path.exists() else parse_config(None)

    if args.command in ("stats", "events"):
        try:
            if args.command == "stats":
                await show_stats(config)
            else:
                await show_events(
                    config, args.query, args.token, args.category, args.limit, args.hours
                )
        except httpx.HTTPError as e:
            logging.error(f"Could not reach the events API at {config.feed.api_base}: {e}")
            sys.exit(1)
    else:
        await show_wallet(config, args.address, args.limit)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect QX exchange activity and Qubic wallets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dashboard numbers for the last 24 hours
  qx-analyze stats

  # Whale bids on CFB among the last 500 events
  qx-analyze events --token CFB --category bid --limit 500 --query whale

  # Balance, assets and recent QX events for a wallet
  qx-analyze wallet BZBQFLLBNCXEMGLOBHUVFTLUPLVCPQUASSILFABOFFBCADQSSUPNWLZBQEXK

  # Use a different config and show debug logging
  qx-analyze --config prod.yaml --debug stats
        """,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("stats", help="Show 24h KPIs, activity and top wallets")

    events = subparsers.add_parser("events", help="List recent events with filters")
    events.add_argument(
        "--query", "-q", default="", help='Match addresses, tick or token; "whale" matches whales'
    )
    events.add_argument("--token", "-t", help='Token symbol, or "other" for unlisted tokens')
    events.add_argument("--category", choices=CATEGORY_CHOICES, help="Action category")
    events.add_argument(
        "--limit",
        "-l",
        type=int,
        default=100,
        help="Number of recent events to fetch (default: 100)",
    )
    events.add_argument("--hours", type=float, help="Only events from the last N hours")

    wallet = subparsers.add_parser("wallet", help="Analyze a single wallet")
    wallet.add_argument("address", help="60-character Qubic wallet address")
    wallet.add_argument(
        "--limit",
        "-l",
        type=int,
        default=20,
        help="Number of stored events to show (default: 20)",
    )

    return parser


def main(argv: list[str] | None = None):
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        print("\nAnalysis interrupted.")
        sys.exit(0)


if __name__ == "__main__":
    main()
