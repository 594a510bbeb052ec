"""Multi-timeframe RSI overbought monitor for Bybit USDT perpetuals."""

__version__ = "0.1.0"
