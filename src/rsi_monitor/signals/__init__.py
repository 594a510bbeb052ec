"""Signal computation: RSI with Wilder smoothing over candle windows."""

from rsi_monitor.signals.rsi import compute_rsi, rsi_from_candles

__all__ = ["compute_rsi", "rsi_from_candles"]
