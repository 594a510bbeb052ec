"""Alert deduplication and trigger engine.

Decides, for every window update, whether a (symbol, timeframe) warrants a
new overbought alert:

1. Recompute RSI over the window closes (no decision while undefined).
2. Reset: a symbol whose RSI falls below ``threshold - reset_margin`` leaves
   the timeframe's dedup set. The same drop clears a composite entry for
   which this timeframe is one of the legs.
3. Below threshold: no alert (near-threshold values are logged at DEBUG).
4. At/above threshold: fresh if not deduplicated, otherwise suppressed. A
   symbol re-alerts only after a reset (round trip).
5. Candidates pass a liquidity gate (24h turnover and open interest value),
   then the alert is delivered. Dedup state changes only after confirmed
   delivery, so a failed delivery is retried on the next qualifying update.

A successful single-timeframe alert is followed by the composite check: the
fast timeframe and the first higher timeframe (priority order) both at or
above threshold produce one multi-timeframe alert per symbol until a leg
drops below the reset level. The composite path has no round-trip rule.

Callers must hold ``store.lock(symbol, timeframe)`` around ``check_symbol``;
``process_live_candle`` and ``process_window`` do so themselves.
"""

import asyncio
from collections.abc import Sequence
from decimal import Decimal

from rsi_monitor.config import LiquiditySettings, MonitorSettings
from rsi_monitor.exchange.client import MarketDataFeed
from rsi_monitor.logging import get_logger
from rsi_monitor.market_data.window_store import TimeframeStateStore
from rsi_monitor.models import Candle, Decision
from rsi_monitor.notifications.base import NotificationSink
from rsi_monitor.signals.rsi import compute_rsi
from rsi_monitor.tracker.outcome import AlertTracker

logger = get_logger(__name__)


class TriggerEngine:
    """Owns dedup state and turns window updates into alert decisions.

    Args:
        store: Candle windows and last signal per (symbol, timeframe).
        feed: Market data source for liquidity metrics and funding rate.
        notifier: Alert delivery sink.
        tracker: Outcome tracker that records every delivered alert.
        settings: Thresholds, timeframes, composite priority and blacklist.
        liquidity: Liquidity floors for candidate alerts.
        bias: Trade bias shown in notifications.
    """

    def __init__(
        self,
        store: TimeframeStateStore,
        feed: MarketDataFeed,
        notifier: NotificationSink,
        tracker: AlertTracker,
        settings: MonitorSettings,
        liquidity: LiquiditySettings,
        bias: str = "SHORT",
    ) -> None:
        self._store = store
        self._feed = feed
        self._notifier = notifier
        self._tracker = tracker
        self._settings = settings
        self._liquidity = liquidity
        self._bias = bias
        self._blacklist = set(settings.blacklist)
        self._alerted: dict[str, set[str]] = {tf: set() for tf in settings.timeframes}
        # symbol -> paired (non-fast) timeframe of the delivered composite alert
        self._composite_alerted: dict[str, str] = {}
        self._composite_locks: dict[str, asyncio.Lock] = {}

    # ──────────────────────────────────────────────
    # State inspection
    # ──────────────────────────────────────────────

    def is_blacklisted(self, symbol: str) -> bool:
        return symbol in self._blacklist

    def alerted_symbols(self, timeframe: str) -> set[str]:
        """Copy of the dedup set for one timeframe."""
        return set(self._alerted.get(timeframe, ()))

    def composite_alerted(self) -> dict[str, str]:
        """Copy of the composite dedup map (symbol -> paired timeframe)."""
        return dict(self._composite_alerted)

    def current_signal(self, symbol: str, timeframe: str) -> Decimal | None:
        return compute_rsi(self._store.closes(symbol, timeframe), self._settings.rsi_period)

    # ──────────────────────────────────────────────
    # Entry points
    # ──────────────────────────────────────────────

    async def process_live_candle(
        self, symbol: str, timeframe: str, candle: Candle
    ) -> Decision:
        """Ingest one streamed candle and evaluate the key."""
        if self.is_blacklisted(symbol) or not self._store.has_window(symbol, timeframe):
            return Decision.NO_SIGNAL
        async with self._store.lock(symbol, timeframe):
            if not self._store.ingest_live_candle(symbol, timeframe, candle):
                return Decision.NO_SIGNAL
            return await self.check_symbol(symbol, timeframe)

    async def process_window(
        self, symbol: str, timeframe: str, candles: Sequence[Candle]
    ) -> Decision:
        """Replace a key's window after a REST re-poll and evaluate it."""
        if self.is_blacklisted(symbol):
            return Decision.NO_SIGNAL
        async with self._store.lock(symbol, timeframe):
            self._store.replace_window(symbol, timeframe, candles)
            return await self.check_symbol(symbol, timeframe)

    async def check_symbol(self, symbol: str, timeframe: str) -> Decision:
        """Single-timeframe decision for the key's current window."""
        if self.is_blacklisted(symbol):
            return Decision.NO_SIGNAL

        rsi = self.current_signal(symbol, timeframe)
        if rsi is None:
            return Decision.NO_SIGNAL

        self._store.set_last_signal(symbol, timeframe, rsi)
        threshold = self._settings.rsi_threshold
        reset_level = self._settings.reset_threshold
        alerted = self._alerted.setdefault(timeframe, set())

        if rsi < reset_level:
            self._reset_composite_leg(symbol, timeframe, rsi)
            if symbol in alerted:
                alerted.discard(symbol)
                logger.info(
                    "alert_reset",
                    symbol=symbol,
                    timeframe=timeframe,
                    rsi=str(rsi),
                    reset_level=str(reset_level),
                )
                return Decision.RESET

        if rsi < threshold:
            if rsi >= threshold - self._settings.near_threshold_margin:
                logger.debug("rsi_near_threshold", symbol=symbol, timeframe=timeframe, rsi=str(rsi))
                return Decision.NEAR_THRESHOLD
            return Decision.BELOW_THRESHOLD

        # Only the reset branch above re-arms a symbol
        if symbol in alerted:
            logger.debug("alert_suppressed", symbol=symbol, timeframe=timeframe, rsi=str(rsi))
            return Decision.SUPPRESSED

        if not await self._passes_liquidity(symbol, timeframe):
            return Decision.ILLIQUID

        funding_rate = await self._feed.fetch_funding_rate(symbol)
        logger.info(
            "rsi_alert_triggered",
            symbol=symbol,
            timeframe=timeframe,
            rsi=str(rsi),
            funding_rate=str(funding_rate) if funding_rate is not None else None,
        )
        delivered = await self._notifier.send_single_alert(
            symbol, rsi, timeframe, funding_rate, self._bias
        )
        if not delivered:
            logger.warning("alert_delivery_failed", symbol=symbol, timeframe=timeframe)
            return Decision.DELIVERY_FAILED

        alerted.add(symbol)
        self._record(symbol, rsi, timeframe, timeframe, funding_rate)
        await self.check_composite(symbol)
        return Decision.ALERTED

    async def check_composite(self, symbol: str) -> Decision:
        """Multi-timeframe decision for one symbol, serialized per symbol."""
        if self.is_blacklisted(symbol):
            return Decision.NO_SIGNAL
        lock = self._composite_locks.setdefault(symbol, asyncio.Lock())
        async with lock:
            return await self._check_composite(symbol)

    # ──────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────

    async def _check_composite(self, symbol: str) -> Decision:
        fast_tf = self._settings.fast_timeframe
        threshold = self._settings.rsi_threshold
        reset_level = self._settings.reset_threshold

        rsi_fast = self.current_signal(symbol, fast_tf)
        if rsi_fast is None:
            return Decision.NO_SIGNAL
        if rsi_fast < threshold:
            return Decision.BELOW_THRESHOLD

        paired_tf = self._composite_alerted.get(symbol)
        if paired_tf is not None:
            rsi_paired = self.current_signal(symbol, paired_tf)
            if rsi_paired is not None and rsi_paired < reset_level:
                del self._composite_alerted[symbol]
                logger.info(
                    "composite_alert_reset",
                    symbol=symbol,
                    pair=f"{paired_tf}+{fast_tf}",
                    reset_level=str(reset_level),
                )
            else:
                logger.debug("composite_alert_suppressed", symbol=symbol, pair=f"{paired_tf}+{fast_tf}")
                return Decision.SUPPRESSED

        other_tf = None
        rsi_other = None
        for tf in self._settings.composite_priority:
            if tf == fast_tf:
                continue
            value = self.current_signal(symbol, tf)
            if value is not None and value >= threshold:
                other_tf, rsi_other = tf, value
                break
        if other_tf is None:
            return Decision.BELOW_THRESHOLD

        pair_label = f"{other_tf}+{fast_tf}"
        funding_rate = await self._feed.fetch_funding_rate(symbol)
        logger.info(
            "composite_alert_triggered",
            symbol=symbol,
            pair=pair_label,
            rsi_fast=str(rsi_fast),
            rsi_other=str(rsi_other),
        )
        delivered = await self._notifier.send_composite_alert(
            symbol, rsi_fast, rsi_other, pair_label, funding_rate, self._bias
        )
        if not delivered:
            logger.warning("alert_delivery_failed", symbol=symbol, timeframe=pair_label)
            return Decision.DELIVERY_FAILED

        self._composite_alerted[symbol] = other_tf
        self._record(symbol, rsi_fast, pair_label, fast_tf, funding_rate)
        return Decision.ALERTED

    def _reset_composite_leg(self, symbol: str, timeframe: str, rsi: Decimal) -> None:
        paired_tf = self._composite_alerted.get(symbol)
        if paired_tf is None:
            return
        if timeframe not in (paired_tf, self._settings.fast_timeframe):
            return
        del self._composite_alerted[symbol]
        logger.info(
            "composite_alert_reset",
            symbol=symbol,
            pair=f"{paired_tf}+{self._settings.fast_timeframe}",
            leg=timeframe,
            rsi=str(rsi),
        )

    async def _passes_liquidity(self, symbol: str, timeframe: str) -> bool:
        """Reject when a known metric is below its floor; unknown metrics pass."""
        volume, open_interest = await asyncio.gather(
            self._feed.fetch_volume_24h(symbol),
            self._feed.fetch_open_interest(symbol),
        )
        if volume is not None and volume < self._liquidity.min_volume_24h:
            logger.info(
                "liquidity_rejected",
                symbol=symbol,
                timeframe=timeframe,
                metric="volume_24h",
                value=str(volume),
                floor=str(self._liquidity.min_volume_24h),
            )
            return False
        if open_interest is not None and open_interest < self._liquidity.min_open_interest:
            logger.info(
                "liquidity_rejected",
                symbol=symbol,
                timeframe=timeframe,
                metric="open_interest",
                value=str(open_interest),
                floor=str(self._liquidity.min_open_interest),
            )
            return False
        return True

    def _record(
        self,
        symbol: str,
        signal: Decimal,
        label: str,
        price_timeframe: str,
        funding_rate: Decimal | None,
    ) -> None:
        entry_price = self._store.latest_close(symbol, price_timeframe)
        if entry_price is None or entry_price <= 0:
            logger.warning("alert_not_tracked", symbol=symbol, timeframe=label, reason="no_entry_price")
            return
        self._tracker.record(symbol, signal, label, entry_price, funding_rate)
