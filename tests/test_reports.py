"""Tests for the CLI report helpers."""

from decimal import Decimal

from rsi_monitor.models import TickerSnapshot
from rsi_monitor.reports import filter_liquid, render_stats
from rsi_monitor.tracker.outcome import AlertTracker


def _ticker(symbol: str, volume: str | None, oi: str | None) -> TickerSnapshot:
    return TickerSnapshot(
        symbol=symbol,
        last_price=Decimal("1"),
        volume_24h=Decimal(volume) if volume is not None else None,
        open_interest=Decimal(oi) if oi is not None else None,
    )


class TestRenderStats:

    def test_empty_log(self, tracker: AlertTracker) -> None:
        text = render_stats(tracker, ["4h", "1h", "15m", "1m"])

        assert "Total Alerts: 0" in text
        assert "Success Rate: 0%" in text
        assert "RECENT ALERTS" not in text

    def test_recent_and_breakdown(self, tracker: AlertTracker, clock) -> None:
        a = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.record("ETHUSDT", Decimal("88"), "4h", Decimal("10"))
        clock.advance(600)
        tracker.observe(a.id, Decimal("99"))

        text = render_stats(tracker, ["4h", "1h", "15m", "1m"])

        assert "Total Alerts: 2" in text
        assert "Success Rate: 100.00% (of completed alerts)" in text
        assert "Avg Time to Target: 10.00 minutes" in text
        assert "BTCUSDT (1h) - RSI: 90.00" in text
        assert "Target reached in 10.00 minutes" in text
        assert "  1H: 1 alerts | 1/1 success (100.00%)" in text
        assert "  4H: 1 alerts | 0/0 success (0%)" in text
        assert "15M:" not in text


class TestFilterLiquid:

    def test_both_floors_required(self) -> None:
        tickers = {
            "AAAUSDT": _ticker("AAAUSDT", "6000000", "3000000"),
            "BBBUSDT": _ticker("BBBUSDT", "4000000", "3000000"),
            "CCCUSDT": _ticker("CCCUSDT", "6000000", "1000000"),
            "DDDUSDT": _ticker("DDDUSDT", None, "3000000"),
        }

        liquid = filter_liquid(
            ["AAAUSDT", "BBBUSDT", "CCCUSDT", "DDDUSDT", "EEEUSDT"],
            tickers,
            Decimal("5000000"),
            Decimal("2000000"),
        )

        assert liquid == ["AAAUSDT"]
