"""Shared test fixtures for the RSI monitor."""

from collections.abc import Callable
from decimal import Decimal
from pathlib import Path

import pytest

from rsi_monitor.config import (
    DiscordSettings,
    LiquiditySettings,
    MonitorSettings,
    TrackerSettings,
)
from rsi_monitor.models import Candle
from rsi_monitor.tracker.outcome import AlertTracker
from rsi_monitor.tracker.store import AlertStore


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def candles_from_closes(closes: list[Decimal], start_ms: int = 0, step_ms: int = 60_000) -> list[Candle]:
    return [
        Candle(
            timestamp=start_ms + i * step_ms,
            open=close,
            high=close,
            low=close,
            close=close,
            volume=Decimal("1"),
        )
        for i, close in enumerate(closes)
    ]


def candles_with_rsi(target: int, period: int = 14, base: int = 1000) -> list[Candle]:
    """``period + 1`` candles whose RSI is exactly ``target``.

    One gain of ``target`` followed by one loss of ``100 - target`` and flat
    closes after that, so RSI = 100 * gain / (gain + loss) = target. The last
    close is ``base + 2 * target - 100``.
    """
    gain = Decimal(target)
    loss = Decimal(100 - target)
    last = Decimal(base) + gain - loss
    closes = [Decimal(base), Decimal(base) + gain] + [last] * (period - 1)
    return candles_from_closes(closes)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor_settings() -> MonitorSettings:
    """Defaults with no inter-request delay."""
    return MonitorSettings(request_delay=0)


@pytest.fixture
def liquidity_settings() -> LiquiditySettings:
    return LiquiditySettings()


@pytest.fixture
def tracker_settings(tmp_path: Path) -> TrackerSettings:
    return TrackerSettings(store_path=str(tmp_path / "alerts_history.json"))


@pytest.fixture
def discord_settings() -> DiscordSettings:
    return DiscordSettings(webhook_url="https://discord.test/api/webhooks/1/abc")


@pytest.fixture
def tracker(tracker_settings: TrackerSettings, clock: FakeClock) -> AlertTracker:
    """Tracker persisting to a temp file, driven by the fake clock."""
    return AlertTracker(
        tracker_settings,
        store=AlertStore(tracker_settings.store_path),
        clock=clock,
    )


@pytest.fixture
def make_rsi_candles() -> Callable[..., list[Candle]]:
    return candles_with_rsi


@pytest.fixture
def make_candles() -> Callable[..., list[Candle]]:
    return candles_from_closes
