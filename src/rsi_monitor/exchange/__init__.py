"""Exchange layer -- Bybit market data via ccxt REST and the v5 public websocket."""

from rsi_monitor.exchange.bybit_client import BybitClient
from rsi_monitor.exchange.client import MarketDataFeed
from rsi_monitor.exchange.stream import BybitKlineStream
from rsi_monitor.exchange.types import kline_topic, to_bybit_interval

__all__ = [
    "BybitClient",
    "BybitKlineStream",
    "MarketDataFeed",
    "kline_topic",
    "to_bybit_interval",
]
