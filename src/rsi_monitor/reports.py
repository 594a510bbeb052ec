"""Command-line reports.

``rsi-monitor-stats``   aggregate alert statistics, recent alerts, per-timeframe breakdown
``rsi-monitor-symbols`` how many symbols survive the blacklist and liquidity floors
"""

import argparse
import asyncio
from datetime import datetime
from decimal import Decimal

from rsi_monitor.config import AppSettings
from rsi_monitor.exchange.bybit_client import BybitClient
from rsi_monitor.logging import setup_logging
from rsi_monitor.models import AlertRecord, AlertStatus, TickerSnapshot
from rsi_monitor.tracker.outcome import AlertTracker
from rsi_monitor.tracker.store import AlertStore

_STATUS_MARKS = {
    AlertStatus.SUCCESS: "✅",
    AlertStatus.PENDING: "⏳",
    AlertStatus.EXPIRED: "⏰",
    AlertStatus.FAILED: "❌",
}


def _pct(value: Decimal | None) -> str:
    if value is None:
        return "N/A"
    return f"{value.quantize(Decimal('0.0001'))}%"


def format_alert(index: int, alert: AlertRecord) -> list[str]:
    lines = [
        f"{index}. {_STATUS_MARKS[alert.status]} {alert.symbol} ({alert.timeframe}) - RSI: {alert.signal}",
        f"   Entry Price: {alert.entry_price}",
        f"   Current Price: {alert.current_price}",
        f"   Current Excursion: {_pct(alert.excursion_pct())}",
    ]
    if alert.max_excursion_pct > 0:
        lines.append(f"   Max Excursion: {_pct(alert.max_excursion_pct)}")
        if alert.max_excursion_at is not None:
            minutes = (alert.max_excursion_at - alert.created_at) / 60
            lines.append(f"   Max excursion reached in {minutes:.2f} minutes")
    lines.append(f"   Target: {alert.target_price} | Status: {alert.status.value}")
    if alert.time_to_target_minutes is not None:
        lines.append(f"   Target reached in {alert.time_to_target_minutes} minutes")
    lines.append(f"   Created: {datetime.fromtimestamp(alert.created_at):%Y-%m-%d %H:%M:%S}")
    return lines


def render_stats(tracker: AlertTracker, timeframes: list[str], recent: int = 10) -> str:
    """Full statistics report as text."""
    stats = tracker.statistics()
    rule = "═" * 60
    thin = "─" * 60
    lines = [
        "",
        "ALERT STATISTICS",
        rule,
        f"Total Alerts: {stats.total}",
        f"Target: {stats.target_percent}% from alert price",
        thin,
        f"Success: {stats.success}",
        f"Pending: {stats.pending}",
        f"Expired: {stats.expired}",
        f"Failed: {stats.failed}",
        thin,
        f"Success Rate: {stats.success_rate}% (of completed alerts)",
    ]
    if stats.avg_time_to_target > 0:
        lines.append(f"Avg Time to Target: {stats.avg_time_to_target} minutes")
    lines += [
        thin,
        f"Average Max Excursion: {_pct(stats.avg_max_excursion)}",
        f"Average Final Excursion: {_pct(stats.avg_final_excursion)}",
        f"Best Excursion: {_pct(stats.best_excursion)}",
        f"Worst Excursion: {_pct(stats.worst_excursion)}",
        rule,
    ]

    if stats.total > 0:
        lines += ["", f"RECENT ALERTS (last {recent}):", ""]
        for i, alert in enumerate(tracker.recent(recent), start=1):
            lines += format_alert(i, alert)
            lines.append("")

    lines += ["", "BY TIMEFRAME:", ""]
    for row in tracker.timeframe_breakdown(timeframes):
        lines.append(
            f"  {row['timeframe'].upper()}: {row['alerts']} alerts | "
            f"{row['success']}/{row['completed']} success ({row['success_rate']}%)"
        )
    return "\n".join(lines)


def filter_liquid(
    symbols: list[str],
    tickers: dict[str, TickerSnapshot],
    min_volume_24h: Decimal,
    min_open_interest: Decimal,
) -> list[str]:
    """Symbols with a ticker whose turnover and open interest meet both floors."""
    liquid = []
    for symbol in symbols:
        ticker = tickers.get(symbol)
        if ticker is None or ticker.volume_24h is None or ticker.open_interest is None:
            continue
        if ticker.volume_24h >= min_volume_24h and ticker.open_interest >= min_open_interest:
            liquid.append(symbol)
    return liquid


def show_stats() -> None:
    parser = argparse.ArgumentParser(description="Print alert outcome statistics")
    parser.add_argument("--store", help="Alert history JSON file (default: TRACKER_STORE_PATH)")
    parser.add_argument("--recent", type=int, default=10, help="Number of recent alerts to list")
    args = parser.parse_args()

    settings = AppSettings()
    setup_logging("WARNING")
    tracker = AlertTracker(
        settings.tracker,
        store=AlertStore(args.store or settings.tracker.store_path),
    )
    # Composite labels ("1h+1m") are listed after the plain timeframes
    timeframes = list(settings.monitor.timeframes)
    timeframes += [a.timeframe for a in tracker.alerts if a.timeframe not in timeframes]
    print(render_stats(tracker, list(dict.fromkeys(timeframes)), recent=args.recent))


async def _check_symbols(settings: AppSettings, examples: int) -> None:
    client = BybitClient(settings.exchange, settings.retry)
    try:
        await client.connect()
        symbols = await client.list_symbols(settings.exchange.category)
        print(f"Total symbols on Bybit: {len(symbols)}")

        blacklist = set(settings.monitor.blacklist)
        remaining = [s for s in symbols if s not in blacklist]
        print(f"After blacklist ({len(blacklist)} excluded): {len(remaining)}")

        tickers = await client.fetch_liquidity_snapshot()
        if not tickers:
            print("Could not fetch tickers")
            return
        print(f"Fetched tickers for {len(tickers)} symbols")

        floors = settings.liquidity
        liquid = filter_liquid(remaining, tickers, floors.min_volume_24h, floors.min_open_interest)
        print("")
        print("LIQUIDITY FILTER RESULTS:")
        print(f"   Minimum Volume 24h: ${floors.min_volume_24h:,}")
        print(f"   Minimum Open Interest: ${floors.min_open_interest:,}")
        print(f"   Symbols before filter: {len(remaining)}")
        print(f"   Symbols after filter: {len(liquid)}")
        print(f"   Removed: {len(remaining) - len(liquid)}")

        if liquid:
            print("")
            print(f"First {examples} liquid symbols:")
            for symbol in liquid[:examples]:
                t = tickers[symbol]
                print(f"   {symbol}: Vol24h=${t.volume_24h:,.0f}, OI=${t.open_interest:,.0f}")
    finally:
        await client.close()


def check_symbols() -> None:
    parser = argparse.ArgumentParser(description="Count symbols passing the liquidity floors")
    parser.add_argument("--examples", type=int, default=10, help="Liquid symbols to list")
    args = parser.parse_args()

    settings = AppSettings()
    setup_logging("WARNING")
    asyncio.run(_check_symbols(settings, args.examples))
