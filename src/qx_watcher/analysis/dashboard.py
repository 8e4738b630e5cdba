"""Console dashboard for event statistics and wallet analysis."""

from datetime import datetime, timezone

from ..api.qubic_rpc import WalletAnalysis
from ..detection.amounts import parse_amount
from ..detection.classifier import WhaleClassifier
from ..events import CanonicalEvent
from .aggregates import ActivityBucket, KPIStats, WalletStats


def format_amount(value: int) -> str:
    """Format a token amount with thousands separators."""
    return f"{value:,}"


def format_large_number(value: float) -> str:
    """Format large numbers with K/M/B suffixes."""
    if value >= 1_000_000_000:
        return f"{value / 1_000_000_000:.2f}B"
    elif value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    elif value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:,.0f}"


def short_address(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def create_bar(value: float, max_value: float, width: int = 20) -> str:
    """Create a simple ASCII progress bar."""
    if max_value <= 0:
        return " " * width
    filled = int((value / max_value) * width)
    filled = min(filled, width)
    return "█" * filled + "░" * (width - filled)


def print_header(title: str, width: int = 80):
    """Print a section header."""
    print()
    print("═" * width)
    print(f"  {title}")
    print("═" * width)


def print_banner(title: str, width: int = 78):
    print()
    print("╔" + "═" * width + "╗")
    print("║" + f" {title} ".center(width) + "║")
    print("╚" + "═" * width + "╝")


def print_footer():
    print()
    print("─" * 80)
    print(f"  Generated at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("─" * 80)
    print()


def print_kpis(kpi: KPIStats):
    """Print the headline numbers for the last 24 hours."""
    print_header("LAST 24 HOURS")
    print(f"""
  ┌──────────────────┬──────────────────┬──────────────────┬──────────────────┐
  │   EVENTS         │   WALLETS        │   WHALES         │   VOLUME         │
  │   {kpi.total_events:>12,}   │   {kpi.active_wallets:>12,}   │   {kpi.whales_detected:>12,}   │   {format_large_number(kpi.total_volume):>12}   │
  └──────────────────┴──────────────────┴──────────────────┴──────────────────┘
    """)


def _bucket_label(bucket: ActivityBucket) -> str:
    start = datetime.fromtimestamp(bucket.start_ms / 1000, tz=timezone.utc)
    return start.strftime("%H:%M")


def print_activity_chart(buckets: list[ActivityBucket]):
    """Print event counts per two-hour bucket as horizontal bars."""
    print_header("ACTIVITY (UTC, 2h buckets)")
    print()
    print(f"    {'Start':<6} {'':<30} {'Events':>7} {'Bids':>6} {'Asks':>6} {'Volume':>10}")
    print("    " + "─" * 70)

    peak = max((b.total for b in buckets), default=0)
    for bucket in buckets:
        print(
            f"    {_bucket_label(bucket):<6} {create_bar(bucket.total, peak, 30)} "
            f"{bucket.total:>7,} {bucket.bid_orders:>6,} {bucket.ask_orders:>6,} "
            f"{format_large_number(bucket.volume):>10}"
        )


def print_top_wallets(top: list[tuple[str, int]]):
    """Print the highest-volume source wallets."""
    print_header("TOP WALLETS BY VOLUME")
    print()
    if not top:
        print("    No activity in this window")
        return

    peak = top[0][1]
    for rank, (address, volume) in enumerate(top, start=1):
        print(
            f"    {rank}. {short_address(address):<16} {create_bar(volume, peak, 25)} "
            f"{format_amount(volume):>18}"
        )


def print_stats(stats: dict):
    """Print the /stats payload of the read API."""
    print_banner("QX EXCHANGE ACTIVITY")
    print_kpis(KPIStats(**stats["kpi"]))
    print_activity_chart([ActivityBucket(**b) for b in stats.get("activity", [])])
    print_top_wallets([(w["address"], w["volume"]) for w in stats.get("top_wallets", [])])

    thresholds = stats.get("whale_thresholds") or {}
    if thresholds:
        print_header("WHALE THRESHOLDS")
        print()
        for token, amount in thresholds.items():
            print(f"    {token:<10} {format_amount(amount):>16}")
    print_footer()


def print_events_table(
    events: list[CanonicalEvent],
    classifier: WhaleClassifier,
    tokens: list[str] | None = None,
):
    """Print events newest first, marking whale events."""
    print_banner("QX EVENTS")
    if tokens:
        print()
        print(f"  Tokens: {', '.join(tokens)}")

    print_header(f"{len(events)} EVENTS")
    print()
    if not events:
        print("    No events match these filters")
        print_footer()
        return

    print(
        f"    {'Tick':>10}  {'Procedure':<28} {'Token':<8} {'Amount':>16}  "
        f"{'From':<14} {'To':<14}"
    )
    print("    " + "─" * 96)
    for event in events:
        tick = event.tick_number if event.tick_number is not None else "-"
        whale = " WHALE" if classifier.is_whale_event(event) else ""
        print(
            f"    {tick!s:>10}  {event.procedure_type_name[:28]:<28} {event.token:<8} "
            f"{format_amount(parse_amount(event.amount)):>16}  "
            f"{short_address(event.source_id):<14} {short_address(event.dest_id) or '-':<14}"
            f"{whale}"
        )

    print_footer()


def print_wallet_analysis(
    analysis: WalletAnalysis,
    rollup: WalletStats | None = None,
    recent: list[CanonicalEvent] | None = None,
):
    """Print the RPC view of a wallet alongside its stored QX activity."""
    print_banner("QUBIC WALLET ANALYSIS")

    print_header("WALLET")
    print(f"  Address:     {analysis.address}")
    print(f"  Valid:       {'Yes' if analysis.valid else 'No'}")
    network = analysis.network or {}
    print(f"  Network:     {network.get('status', 'unknown')}")
    if network.get("latest_tick"):
        print(f"  Latest Tick: {network['latest_tick']:,}")

    if analysis.error:
        print()
        print(f"  \033[91m{analysis.error}\033[0m")

    balance = analysis.balance
    if balance:
        print_header("BALANCE")
        print(f"  Balance:           {format_amount(balance.balance):>20} QUBIC")
        print(f"  Incoming Amount:   {format_amount(balance.incoming_amount):>20}")
        print(f"  Outgoing Amount:   {format_amount(balance.outgoing_amount):>20}")
        print(
            f"  Transfers:         {balance.total_transfers:>20,} "
            f"({balance.number_of_incoming_transfers:,} in / "
            f"{balance.number_of_outgoing_transfers:,} out)"
        )
        if balance.valid_for_tick:
            print(f"  Valid For Tick:    {balance.valid_for_tick:>20,}")

    for key, data in (analysis.additional_data or {}).items():
        label = key.replace("_", " ").upper()
        if isinstance(data, dict) and "error" in data:
            print(f"\n  {label}: {data['error']}")
            continue
        assets = next((v for v in data.values() if isinstance(v, list)), [])
        print(f"\n  {label}: {len(assets)} entries")

    if rollup:
        print_header("QX ACTIVITY")
        print(f"  Transactions: {rollup.transaction_count:>10,}")
        print(f"  Volume:       {format_amount(rollup.volume):>20}")
        if rollup.latest_tick is not None:
            print(f"  Latest Tick:  {rollup.latest_tick:>10,}")

    if recent:
        print()
        print(f"    {'Tick':>10}  {'Procedure':<34} {'Token':<8} {'Amount':>16}")
        print("    " + "─" * 72)
        for event in recent:
            direction = "→" if event.source_id == analysis.address else "←"
            tick = event.tick_number if event.tick_number is not None else "-"
            print(
                f"    {tick!s:>10}  {direction} {event.procedure_type_name:<32} "
                f"{event.token:<8} {event.amount or '0':>16}"
            )

    print_footer()
