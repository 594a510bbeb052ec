"""Monitor orchestrator -- startup initialization and the periodic loop.

Startup:
  1. LIST: fetch all linear perpetual symbols (none -> NoSymbolsError)
  2. FILTER: drop blacklisted symbols
  3. INIT: fetch an initial window per (symbol, timeframe) with bounded
     concurrency and subscribe every key that has enough history
  4. STREAM: start the kline stream; live candles flow into the engine

Periodic loop (every ``check_interval`` seconds):
  1. RE-POLL: refresh keys whose per-timeframe interval has elapsed and
     re-evaluate them (backstop for missed stream updates)
  2. OBSERVE: every ``observe_interval`` seconds, feed the latest price of
     each pending alert's symbol to the outcome tracker

Failures for one key are logged and never block other keys; a failing cycle
is logged and the loop continues.
"""

import asyncio
import contextlib
import time
from typing import Any

from rsi_monitor.config import AppSettings
from rsi_monitor.engine.trigger import TriggerEngine
from rsi_monitor.exceptions import NoSymbolsError
from rsi_monitor.exchange.client import MarketDataFeed
from rsi_monitor.logging import get_logger
from rsi_monitor.market_data.window_store import TimeframeStateStore
from rsi_monitor.models import Candle
from rsi_monitor.tracker.outcome import AlertTracker

logger = get_logger(__name__)


class Orchestrator:
    """Wires the feed, window store, trigger engine and tracker together.

    Args:
        settings: Application-wide settings.
        feed: Market data source (REST + stream).
        store: Candle windows per (symbol, timeframe).
        engine: Alert decision engine.
        tracker: Alert outcome tracker.
    """

    def __init__(
        self,
        settings: AppSettings,
        feed: MarketDataFeed,
        store: TimeframeStateStore,
        engine: TriggerEngine,
        tracker: AlertTracker,
    ) -> None:
        self._settings = settings
        self._monitor = settings.monitor
        self._feed = feed
        self._store = store
        self._engine = engine
        self._tracker = tracker
        self._semaphore = asyncio.Semaphore(settings.monitor.max_concurrency)
        self._cycle_lock = asyncio.Lock()
        self._running = False
        self._stop_event = asyncio.Event()
        self._subscribed: set[tuple[str, str]] = set()
        self._symbols: list[str] = []
        self._initialized = 0
        self._last_observe: float = 0.0
        self._last_cycle_at: float | None = None
        self._cycles = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    async def start(self) -> None:
        """Initialize windows, start the stream, then run the periodic loop.

        Raises:
            NoSymbolsError: If no symbol could be listed or initialized.
        """
        logger.info(
            "orchestrator_starting",
            threshold=str(self._monitor.rsi_threshold),
            timeframes=self._monitor.timeframes,
        )
        await self.initialize()
        await self._feed.start_stream()

        self._stop_event.clear()
        self._running = True
        self._last_observe = time.monotonic()
        try:
            await self._run_loop()
        finally:
            await self._feed.stop_stream()
            logger.info("orchestrator_stopped")

    async def stop(self) -> None:
        """Stop the periodic loop and the stream.

        Re-polls and price fetches that have not started yet are skipped, and
        the loop wakes immediately instead of finishing its sleep.
        """
        logger.info("orchestrator_stopping")
        self._running = False
        self._stop_event.set()
        await self._feed.stop_stream()

    # ──────────────────────────────────────────────
    # Startup
    # ──────────────────────────────────────────────

    async def initialize(self) -> int:
        """Load symbols and initial windows; returns symbols initialized."""
        symbols = await self._feed.list_symbols(self._settings.exchange.category)
        if not symbols:
            raise NoSymbolsError("no symbols retrieved from exchange")

        symbols = [s for s in symbols if s and not self._engine.is_blacklisted(s)]
        if not symbols:
            raise NoSymbolsError("every listed symbol is blacklisted")

        self._symbols = symbols
        for symbol in symbols:
            for timeframe in self._monitor.timeframes:
                self._store.register(symbol, timeframe)

        logger.info(
            "initializing_symbols",
            symbols=len(symbols),
            timeframes=self._monitor.timeframes,
        )

        initialized = 0
        tasks = [asyncio.create_task(self._init_symbol(s)) for s in symbols]
        for finished in asyncio.as_completed(tasks):
            if await finished:
                initialized += 1
                if initialized % self._monitor.progress_log_every == 0:
                    logger.info("init_progress", initialized=initialized, total=len(symbols))

        self._initialized = initialized
        if initialized == 0:
            raise NoSymbolsError("no symbol had enough candle history")
        logger.info("symbols_initialized", initialized=initialized, total=len(symbols))
        return initialized

    async def _init_symbol(self, symbol: str) -> bool:
        async with self._semaphore:
            any_ready = False
            for timeframe in self._monitor.timeframes:
                if await self._init_key(symbol, timeframe):
                    any_ready = True
                await asyncio.sleep(self._monitor.request_delay)
            return any_ready

    async def _init_key(self, symbol: str, timeframe: str) -> bool:
        try:
            candles = await self._feed.fetch_candles(symbol, timeframe, self._monitor.window_size)
        except Exception as e:
            logger.warning("init_key_failed", symbol=symbol, timeframe=timeframe, error=str(e))
            return False
        if len(candles) < self._monitor.rsi_period + 1:
            return False
        self._store.replace_window(symbol, timeframe, candles)
        self._subscribe(symbol, timeframe)
        return True

    def _subscribe(self, symbol: str, timeframe: str) -> None:
        if (symbol, timeframe) in self._subscribed:
            return
        self._feed.subscribe(symbol, timeframe, self._on_candle)
        self._subscribed.add((symbol, timeframe))

    async def _on_candle(self, symbol: str, timeframe: str, candle: Candle) -> None:
        try:
            await self._engine.process_live_candle(symbol, timeframe, candle)
        except Exception as e:
            logger.error(
                "live_candle_failed",
                symbol=symbol,
                timeframe=timeframe,
                error=str(e),
                exc_info=True,
            )

    # ──────────────────────────────────────────────
    # Periodic loop
    # ──────────────────────────────────────────────

    async def _run_loop(self) -> None:
        while self._running:
            try:
                async with self._cycle_lock:
                    await self.run_cycle()
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._monitor.check_interval
                    )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("orchestrator_cycle_error", error=str(e), exc_info=True)
                await asyncio.sleep(10)

    async def run_cycle(self) -> int:
        """One periodic sweep; returns the number of keys re-evaluated."""
        now = time.monotonic()
        due = [
            (symbol, timeframe)
            for symbol, timeframe in self._store.keys()
            if not self._engine.is_blacklisted(symbol)
            and now - self._store.last_checked_at(symbol, timeframe)
            > self._monitor.poll_interval_for(timeframe)
        ]
        results = await asyncio.gather(*(self._repoll(s, tf) for s, tf in due))
        checked = sum(results)
        logger.info("periodic_check_completed", checked=checked, due=len(due))

        if time.monotonic() - self._last_observe >= self._settings.tracker.observe_interval:
            await self.observe_pending()
            self._last_observe = time.monotonic()

        self._cycles += 1
        self._last_cycle_at = time.time()
        return checked

    async def _repoll(self, symbol: str, timeframe: str) -> int:
        async with self._semaphore:
            if self._stop_event.is_set():
                return 0
            try:
                candles = await self._feed.fetch_candles(
                    symbol, timeframe, self._monitor.window_size
                )
                await asyncio.sleep(self._monitor.request_delay)
                if self._stop_event.is_set() or len(candles) < self._monitor.rsi_period + 1:
                    return 0
                await self._engine.process_window(symbol, timeframe, candles)
                # Keys without enough history at startup join the stream here
                self._subscribe(symbol, timeframe)
                return 1
            except Exception as e:
                logger.error(
                    "repoll_failed",
                    symbol=symbol,
                    timeframe=timeframe,
                    error=str(e),
                    exc_info=True,
                )
                return 0

    async def observe_pending(self) -> int:
        """Feed the latest price to every pending alert; returns alerts observed."""
        pending = self._tracker.pending()
        if not pending:
            return 0

        symbols = list(dict.fromkeys(a.symbol for a in pending))
        prices = await asyncio.gather(*(self._fetch_price(s) for s in symbols))
        price_by_symbol = dict(zip(symbols, prices))

        observed = 0
        for alert in pending:
            price = price_by_symbol.get(alert.symbol)
            if price is None:
                continue
            self._tracker.observe(alert.id, price)
            observed += 1
        logger.info("pending_alerts_observed", observed=observed, pending=len(pending))
        return observed

    async def _fetch_price(self, symbol: str):
        async with self._semaphore:
            if self._stop_event.is_set():
                return None
            return await self._feed.fetch_last_price(symbol)

    def status(self) -> dict[str, Any]:
        """Runtime snapshot for the status API."""
        return {
            "running": self._running,
            "symbols": len(self._symbols),
            "initialized": self._initialized,
            "keys": len(self._store.keys()),
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at,
            "alerted": {
                tf: len(self._engine.alerted_symbols(tf)) for tf in self._monitor.timeframes
            },
            "composite_alerted": len(self._engine.composite_alerted()),
            "pending_alerts": len(self._tracker.pending()),
        }
