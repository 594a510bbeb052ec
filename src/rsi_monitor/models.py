"""Shared data models for the RSI overbought monitor.

All prices, rates and signal values use Decimal. Exchange payloads arrive as
strings or floats and are converted with ``Decimal(str(value))``.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class AlertStatus(str, Enum):
    """Lifecycle status of a tracked alert.

    FAILED is part of the taxonomy but no transition into it exists.
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"


class Decision(str, Enum):
    """Outcome of a single trigger-engine evaluation."""

    NO_SIGNAL = "no_signal"
    BELOW_THRESHOLD = "below_threshold"
    NEAR_THRESHOLD = "near_threshold"
    RESET = "reset"
    SUPPRESSED = "suppressed"
    ILLIQUID = "illiquid"
    DELIVERY_FAILED = "delivery_failed"
    ALERTED = "alerted"


@dataclass(frozen=True)
class Candle:
    """One OHLCV period. ``timestamp`` is the period open in epoch milliseconds."""

    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    turnover: Decimal = Decimal("0")


@dataclass
class TickerSnapshot:
    """Liquidity snapshot for a single perpetual symbol."""

    symbol: str
    last_price: Decimal | None
    volume_24h: Decimal | None  # 24h turnover in quote currency
    open_interest: Decimal | None  # open interest value in quote currency


_DECIMAL_FIELDS = (
    "signal",
    "entry_price",
    "target_price",
    "funding_rate",
    "max_price",
    "min_price",
    "current_price",
    "max_excursion_pct",
    "max_excursion_price",
    "final_excursion_pct",
    "time_to_target_minutes",
)


@dataclass
class AlertRecord:
    """A triggered alert and its tracked price outcome.

    Timestamps are Unix seconds. Excursion is measured in percent from the
    entry price, positive when price moved down (favorable for a short).
    """

    id: str
    symbol: str
    signal: Decimal
    timeframe: str
    entry_price: Decimal
    target_price: Decimal
    funding_rate: Decimal | None
    created_at: float
    status: AlertStatus = AlertStatus.PENDING
    target_reached: bool | None = None
    target_reached_at: float | None = None
    time_to_target_minutes: Decimal | None = None
    max_price: Decimal = Decimal("0")
    min_price: Decimal = Decimal("0")
    current_price: Decimal = Decimal("0")
    last_update: float = 0.0
    max_excursion_pct: Decimal = Decimal("0")
    max_excursion_price: Decimal = Decimal("0")
    max_excursion_at: float | None = None
    final_excursion_pct: Decimal | None = None

    def excursion_pct(self, price: Decimal | None = None) -> Decimal | None:
        """Favorable excursion of ``price`` (default: current price) from entry.

        None when the entry price is zero (no finite excursion exists).
        """
        if price is None:
            price = self.current_price
        if self.entry_price == 0:
            return None
        return (self.entry_price - price) / self.entry_price * Decimal("100")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (Decimals as strings)."""
        data = asdict(self)
        data["status"] = self.status.value
        for name in _DECIMAL_FIELDS:
            if data[name] is not None:
                data[name] = str(data[name])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertRecord":
        """Rebuild a record from ``to_dict`` output."""
        values = dict(data)
        values["status"] = AlertStatus(values.get("status", AlertStatus.PENDING.value))
        for name in _DECIMAL_FIELDS:
            if values.get(name) is not None:
                values[name] = Decimal(str(values[name]))
        return cls(**values)


@dataclass
class AlertStatistics:
    """Aggregate performance of all tracked alerts."""

    total: int = 0
    success: int = 0
    failed: int = 0
    pending: int = 0
    expired: int = 0
    success_rate: Decimal = Decimal("0")
    avg_time_to_target: Decimal = Decimal("0")
    avg_max_excursion: Decimal = Decimal("0")
    avg_final_excursion: Decimal = Decimal("0")
    best_excursion: Decimal = Decimal("0")
    worst_excursion: Decimal = Decimal("0")
    target_percent: Decimal = Decimal("-1")
