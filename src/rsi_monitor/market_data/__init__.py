"""Market data state: bounded per-(symbol, timeframe) candle windows."""

from rsi_monitor.market_data.window_store import TimeframeStateStore, TimeframeWindow

__all__ = ["TimeframeStateStore", "TimeframeWindow"]
