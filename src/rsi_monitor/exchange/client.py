"""Abstract market-data feed interface.

Defines the contract the trigger engine and orchestrator depend on,
keeping Bybit-specific details isolated in the concrete implementation.
Every fetch method degrades to an empty/None result instead of raising.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from rsi_monitor.exchange.types import CandleCallback
from rsi_monitor.models import Candle, TickerSnapshot


class MarketDataFeed(ABC):
    """Abstract base class for perpetual-futures market data sources."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets/instruments."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up REST and streaming resources."""
        ...

    @abstractmethod
    async def list_symbols(self, category: str = "linear") -> list[str]:
        """Return exchange ids of all tradable perpetual symbols (e.g. "BTCUSDT")."""
        ...

    @abstractmethod
    async def fetch_candles(
        self, symbol: str, timeframe: str, limit: int
    ) -> list[Candle]:
        """Fetch the latest ``limit`` candles ordered oldest -> newest.

        Retries transient and rate-limit failures with increasing backoff.
        Returns an empty list once retries are exhausted.
        """
        ...

    @abstractmethod
    async def fetch_funding_rate(self, symbol: str) -> Decimal | None:
        """Most recent funding rate, or None when unavailable."""
        ...

    @abstractmethod
    async def fetch_volume_24h(self, symbol: str) -> Decimal | None:
        """24h turnover in quote currency, or None when unavailable."""
        ...

    @abstractmethod
    async def fetch_open_interest(self, symbol: str) -> Decimal | None:
        """Open interest value in quote currency, or None when unavailable."""
        ...

    @abstractmethod
    async def fetch_last_price(self, symbol: str) -> Decimal | None:
        """Last traded price, or None when unavailable."""
        ...

    @abstractmethod
    async def fetch_liquidity_snapshot(self) -> dict[str, TickerSnapshot]:
        """Ticker snapshot for every linear symbol in a single request."""
        ...

    @abstractmethod
    def subscribe(self, symbol: str, timeframe: str, callback: CandleCallback) -> None:
        """Register a live candle callback for (symbol, timeframe)."""
        ...

    @abstractmethod
    async def start_stream(self) -> None:
        """Start delivering live candle updates to subscribers."""
        ...

    @abstractmethod
    async def stop_stream(self) -> None:
        """Stop the live stream; no further callbacks are delivered."""
        ...
