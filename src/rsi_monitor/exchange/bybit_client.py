"""Bybit market-data client implementation via ccxt async.

Wraps ccxt.async_support.bybit for market loading and uses the v5 public
implicit endpoints for klines, tickers and funding history so that raw fields
(kline turnover, ticker turnover24h / openInterestValue) are preserved.

CRITICAL implementation notes:
- Bybit kline response is REVERSE-SORTED: newest first. Reverse before use.
- Symbols are Bybit market ids ("BTCUSDT"), not ccxt unified symbols.
- A non-zero retCode is treated as "no data", never as an exception.
"""

import asyncio
from decimal import Decimal

import ccxt.async_support as ccxt_async

from rsi_monitor.config import ExchangeSettings, RetrySettings, StreamSettings
from rsi_monitor.exchange.client import MarketDataFeed
from rsi_monitor.exchange.stream import BybitKlineStream
from rsi_monitor.exchange.types import (
    CandleCallback,
    candle_from_rest,
    to_bybit_interval,
    to_decimal,
)
from rsi_monitor.logging import get_logger
from rsi_monitor.models import Candle, TickerSnapshot

logger = get_logger(__name__)


class BybitClient(MarketDataFeed):
    """Concrete Bybit public market-data client using ccxt async."""

    def __init__(
        self,
        settings: ExchangeSettings,
        retry: RetrySettings | None = None,
        stream: BybitKlineStream | None = None,
    ) -> None:
        self._settings = settings
        self._retry = retry or RetrySettings()

        self._exchange = ccxt_async.bybit(
            {
                "enableRateLimit": True,
                "timeout": settings.request_timeout_ms,
                "options": {
                    "defaultType": "swap",
                },
            }
        )
        if settings.testnet:
            self._exchange.set_sandbox_mode(True)

        self._stream = stream or BybitKlineStream(
            StreamSettings(), testnet=settings.testnet
        )
        self._markets: dict = {}

    @property
    def exchange(self) -> ccxt_async.bybit:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_bybit", testnet=self._settings.testnet)
        self._markets = await self._exchange.load_markets()
        logger.info("bybit_connected", market_count=len(self._markets))

    async def close(self) -> None:
        """Stop the stream and release ccxt async resources."""
        logger.info("closing_bybit_connection")
        await self._stream.stop()
        await self._exchange.close()
        logger.info("bybit_connection_closed")

    async def list_symbols(self, category: str = "linear") -> list[str]:
        """Return exchange ids of all active linear perpetual swaps.

        Returns an empty list if markets cannot be loaded.
        """
        if not self._markets:
            try:
                self._markets = await self._exchange.load_markets()
            except Exception as e:
                logger.error("symbol_listing_failed", error=str(e))
                return []

        want_linear = category == "linear"
        symbols = [
            market["id"]
            for market in self._markets.values()
            if market.get("swap")
            and bool(market.get("linear")) == want_linear
            and market.get("active", True)
            and market.get("id")
        ]
        logger.debug("fetched_perpetual_symbols", count=len(symbols))
        return symbols

    # ──────────────────────────────────────────────
    # Candles (with retry)
    # ──────────────────────────────────────────────

    async def fetch_candles(
        self, symbol: str, timeframe: str, limit: int
    ) -> list[Candle]:
        """Fetch the latest ``limit`` klines, oldest first.

        Rate limit errors back off ``(attempt + 1) * rate_limit_backoff``
        seconds, other network errors ``(attempt + 1) * network_backoff``.
        Any other error, or exhausting all attempts, returns an empty list.
        """
        if not symbol or not symbol.strip():
            return []

        params = {
            "category": self._settings.category,
            "symbol": symbol,
            "interval": to_bybit_interval(timeframe),
            "limit": limit,
        }
        max_attempts = self._retry.max_attempts

        for attempt in range(max_attempts):
            try:
                response = await self._exchange.public_get_v5_market_kline(params)
            except ccxt_async.RateLimitExceeded as e:
                reason = "rate_limit"
                delay = (attempt + 1) * self._retry.rate_limit_backoff
                error = str(e)
            except ccxt_async.NetworkError as e:
                reason = "network"
                delay = (attempt + 1) * self._retry.network_backoff
                error = str(e)
            except Exception as e:
                logger.warning(
                    "klines_fetch_failed",
                    symbol=symbol,
                    timeframe=timeframe,
                    error=str(e),
                )
                return []
            else:
                return self._parse_klines(response, symbol, timeframe)

            if attempt == max_attempts - 1:
                logger.warning(
                    "klines_retries_exhausted",
                    symbol=symbol,
                    timeframe=timeframe,
                    attempts=max_attempts,
                    reason=reason,
                    error=error,
                )
                break

            logger.debug(
                "klines_retry",
                symbol=symbol,
                timeframe=timeframe,
                reason=reason,
                attempt=attempt + 1,
                delay=delay,
            )
            await asyncio.sleep(delay)

        return []

    def _parse_klines(self, response: dict, symbol: str, timeframe: str) -> list[Candle]:
        if str(response.get("retCode", "0")) != "0":
            logger.warning(
                "klines_rejected",
                symbol=symbol,
                timeframe=timeframe,
                message=response.get("retMsg", "Unknown error"),
            )
            return []

        rows = list((response.get("result") or {}).get("list") or [])
        # CRITICAL: newest first on the wire
        rows.reverse()
        candles: list[Candle] = []
        for row in rows:
            try:
                candles.append(candle_from_rest(row))
            except (ArithmeticError, IndexError, TypeError, ValueError):
                logger.debug("malformed_kline_row", symbol=symbol, row=row)
        return candles

    # ──────────────────────────────────────────────
    # Ticker-derived metrics (best effort)
    # ──────────────────────────────────────────────

    async def _fetch_ticker_info(self, symbol: str) -> dict | None:
        try:
            response = await self._exchange.public_get_v5_market_tickers(
                {"category": self._settings.category, "symbol": symbol}
            )
        except Exception as e:
            logger.debug("ticker_fetch_failed", symbol=symbol, error=str(e))
            return None
        if str(response.get("retCode", "0")) != "0":
            return None
        rows = (response.get("result") or {}).get("list") or []
        return rows[0] if rows else None

    async def fetch_funding_rate(self, symbol: str) -> Decimal | None:
        """Most recently settled funding rate from the funding history endpoint."""
        try:
            response = await self._exchange.public_get_v5_market_funding_history(
                {"category": self._settings.category, "symbol": symbol, "limit": 1}
            )
        except Exception as e:
            logger.debug("funding_rate_fetch_failed", symbol=symbol, error=str(e))
            return None
        if str(response.get("retCode", "0")) != "0":
            return None
        rows = (response.get("result") or {}).get("list") or []
        if not rows:
            return None
        return to_decimal(rows[0].get("fundingRate"))

    async def fetch_volume_24h(self, symbol: str) -> Decimal | None:
        info = await self._fetch_ticker_info(symbol)
        if info is None:
            return None
        return to_decimal(info.get("turnover24h")) or Decimal("0")

    async def fetch_open_interest(self, symbol: str) -> Decimal | None:
        info = await self._fetch_ticker_info(symbol)
        if info is None:
            return None
        return to_decimal(info.get("openInterestValue")) or Decimal("0")

    async def fetch_last_price(self, symbol: str) -> Decimal | None:
        info = await self._fetch_ticker_info(symbol)
        if info is None:
            return None
        return to_decimal(info.get("lastPrice"))

    async def fetch_liquidity_snapshot(self) -> dict[str, TickerSnapshot]:
        """Fetch every linear ticker in one request, keyed by symbol id."""
        try:
            response = await self._exchange.public_get_v5_market_tickers(
                {"category": self._settings.category}
            )
        except Exception as e:
            logger.warning("tickers_fetch_failed", error=str(e))
            return {}
        if str(response.get("retCode", "0")) != "0":
            return {}

        snapshots: dict[str, TickerSnapshot] = {}
        for info in (response.get("result") or {}).get("list") or []:
            symbol = info.get("symbol")
            if not symbol:
                continue
            snapshots[symbol] = TickerSnapshot(
                symbol=symbol,
                last_price=to_decimal(info.get("lastPrice")),
                volume_24h=to_decimal(info.get("turnover24h")),
                open_interest=to_decimal(info.get("openInterestValue")),
            )
        return snapshots

    # ──────────────────────────────────────────────
    # Streaming
    # ──────────────────────────────────────────────

    def subscribe(self, symbol: str, timeframe: str, callback: CandleCallback) -> None:
        self._stream.subscribe(symbol, timeframe, callback)

    async def start_stream(self) -> None:
        await self._stream.start()

    async def stop_stream(self) -> None:
        await self._stream.stop()
