"""Exchange-specific type definitions and conversion helpers."""

from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from rsi_monitor.models import Candle

#: ccxt-style timeframe -> Bybit v5 kline interval
BYBIT_INTERVALS: dict[str, str] = {
    "1m": "1",
    "3m": "3",
    "5m": "5",
    "15m": "15",
    "30m": "30",
    "1h": "60",
    "2h": "120",
    "4h": "240",
    "6h": "360",
    "12h": "720",
    "1d": "D",
    "1w": "W",
}

CandleCallback = Callable[[str, str, Candle], Awaitable[None]]


def to_bybit_interval(timeframe: str) -> str:
    """Map a ccxt-style timeframe ("4h") to a Bybit interval ("240").

    Raises:
        ValueError: If the timeframe is not supported by Bybit.
    """
    try:
        return BYBIT_INTERVALS[timeframe.lower()]
    except KeyError:
        raise ValueError(f"Unsupported timeframe: {timeframe}") from None


def kline_topic(symbol: str, timeframe: str) -> str:
    """Public websocket topic for a symbol's kline stream."""
    return f"kline.{to_bybit_interval(timeframe)}.{symbol}"


def to_decimal(value: Any) -> Decimal | None:
    """Convert an exchange payload value to Decimal, None when missing or malformed."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def candle_from_rest(row: list) -> Candle:
    """Build a Candle from a v5 REST kline row.

    Row layout: [start_ms, open, high, low, close, volume, turnover].
    """
    return Candle(
        timestamp=int(row[0]),
        open=Decimal(str(row[1])),
        high=Decimal(str(row[2])),
        low=Decimal(str(row[3])),
        close=Decimal(str(row[4])),
        volume=Decimal(str(row[5])),
        turnover=Decimal(str(row[6])) if len(row) > 6 else Decimal("0"),
    )


def candle_from_stream(item: dict) -> Candle:
    """Build a Candle from a v5 websocket kline data item."""
    return Candle(
        timestamp=int(item["start"]),
        open=Decimal(str(item["open"])),
        high=Decimal(str(item["high"])),
        low=Decimal(str(item["low"])),
        close=Decimal(str(item["close"])),
        volume=Decimal(str(item["volume"])),
        turnover=Decimal(str(item.get("turnover") or 0)),
    )
