"""Relative Strength Index using Wilder's smoothing.

Seeds average gain and loss with the simple mean of the first ``period``
deltas, then applies Wilder's recursive smoothing to every later delta:

    avg = (avg * (period - 1) + new) / period

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from rsi_monitor.models import Candle

_RSI_QUANTIZE = Decimal("0.01")
_HUNDRED = Decimal("100")


def compute_rsi(prices: Sequence[Decimal], period: int = 14) -> Decimal | None:
    """Compute RSI over an ordered (oldest-first) price series.

    Args:
        prices: Closing prices, oldest first.
        period: Smoothing period N.

    Returns:
        RSI in [0, 100] rounded to 2 decimal places, or None when fewer than
        ``period + 1`` prices are available. A window with no movement at all
        returns 50; a window with gains but no losses returns 100.
    """
    if len(prices) < period + 1:
        return None

    deltas = [prices[i] - prices[i - 1] for i in range(1, len(prices))]
    gains = [d if d > 0 else Decimal("0") for d in deltas]
    losses = [-d if d < 0 else Decimal("0") for d in deltas]

    avg_gain = sum(gains[:period], Decimal("0")) / period
    avg_loss = sum(losses[:period], Decimal("0")) / period

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        if avg_gain == 0:
            return Decimal("50.00")
        return Decimal("100.00")

    rs = avg_gain / avg_loss
    rsi = _HUNDRED - _HUNDRED / (1 + rs)
    return rsi.quantize(_RSI_QUANTIZE, rounding=ROUND_HALF_UP)


def rsi_from_candles(candles: Sequence[Candle], period: int = 14) -> Decimal | None:
    """Compute RSI from candle closes. None when the window is too short."""
    if len(candles) < period + 1:
        return None
    return compute_rsi([c.close for c in candles], period)
