"""Bybit v5 public kline stream -- a supervised websocket connection actor.

Features:
- Automatic reconnection with exponential backoff (reset after a good connect)
- Replay of every registered topic on each (re)connect, in batches
- Application-level heartbeat ({"op": "ping"}) as required by Bybit
- Callbacks dispatched as independent tasks so a slow consumer never stalls
  the socket reader; per-key ordering is left to the consumer's lock
"""

import asyncio
import contextlib
import json
from typing import Any

import websockets

from rsi_monitor.config import StreamSettings
from rsi_monitor.exchange.types import CandleCallback, candle_from_stream, kline_topic
from rsi_monitor.logging import get_logger

logger = get_logger(__name__)


class BybitKlineStream:
    """Kline topic subscriptions over one Bybit public websocket.

    Args:
        settings: Stream endpoint, batching and backoff settings.
        testnet: Use the testnet endpoint instead of mainnet.
    """

    def __init__(self, settings: StreamSettings, testnet: bool = False) -> None:
        self._settings = settings
        self._url = settings.testnet_url if testnet else settings.url
        self._topics: dict[str, tuple[str, str, CandleCallback]] = {}
        self._ws: Any = None
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._pending: set[asyncio.Task] = set()  # type: ignore[type-arg]
        self._reconnect_delay = settings.min_reconnect_delay
        self._reconnects = 0

    @property
    def topics(self) -> list[str]:
        """All registered topics, in registration order."""
        return list(self._topics)

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def reconnect_count(self) -> int:
        return self._reconnects

    def subscribe(self, symbol: str, timeframe: str, callback: CandleCallback) -> None:
        """Register a topic. Sent immediately when connected, else on next connect."""
        topic = kline_topic(symbol, timeframe)
        is_new = topic not in self._topics
        self._topics[topic] = (symbol, timeframe, callback)
        if is_new and self._ws is not None:
            task = asyncio.create_task(self._send_subscribe(self._ws, [topic]))
            self._track(task)

    async def start(self) -> None:
        """Start the supervisor loop in the background."""
        if self._running:
            logger.warning("kline_stream_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._supervise())
        logger.info("kline_stream_started", topics=len(self._topics), url=self._url)

    async def stop(self) -> None:
        """Stop accepting updates and close the connection."""
        if not self._running and self._task is None:
            return
        self._running = False
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        logger.info("kline_stream_stopped", cancelled_callbacks=len(pending))

    # ──────────────────────────────────────────────
    # Connection supervision
    # ──────────────────────────────────────────────

    async def _supervise(self) -> None:
        while self._running:
            try:
                async with websockets.connect(self._url, ping_interval=None) as ws:
                    self._ws = ws
                    self._reconnect_delay = self._settings.min_reconnect_delay
                    logger.info("kline_stream_connected", topics=len(self._topics))
                    await self._replay(ws)
                    heartbeat = asyncio.create_task(self._heartbeat(ws))
                    try:
                        async for raw in ws:
                            self.handle_message(raw)
                    finally:
                        heartbeat.cancel()
                        with contextlib.suppress(asyncio.CancelledError):
                            await heartbeat
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._running:
                    logger.warning("kline_stream_error", error=str(e))
            finally:
                self._ws = None

            if not self._running:
                break

            self._reconnects += 1
            logger.warning(
                "kline_stream_reconnecting",
                delay=self._reconnect_delay,
                attempt=self._reconnects,
            )
            await asyncio.sleep(self._reconnect_delay)
            self._reconnect_delay = min(
                self._reconnect_delay * 2, self._settings.max_reconnect_delay
            )

    async def _replay(self, ws: Any) -> None:
        """Resubscribe every registered topic in batches."""
        topics = list(self._topics)
        size = self._settings.subscribe_batch_size
        for i in range(0, len(topics), size):
            await self._send_subscribe(ws, topics[i : i + size])

    async def _send_subscribe(self, ws: Any, topics: list[str]) -> None:
        try:
            await ws.send(json.dumps({"op": "subscribe", "args": topics}))
        except Exception as e:
            logger.warning("kline_subscribe_failed", topics=len(topics), error=str(e))

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._settings.ping_interval)
            await ws.send(json.dumps({"op": "ping"}))

    # ──────────────────────────────────────────────
    # Message handling
    # ──────────────────────────────────────────────

    def handle_message(self, raw: str | bytes) -> int:
        """Parse one frame and dispatch its candles. Returns candles dispatched."""
        if not self._running:
            return 0
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("kline_stream_bad_frame")
            return 0

        if message.get("op") == "subscribe" and not message.get("success", True):
            logger.warning("kline_subscribe_rejected", message=message.get("ret_msg"))
            return 0

        topic = message.get("topic")
        data = message.get("data")
        if not topic or not data:
            return 0
        registration = self._topics.get(topic)
        if registration is None:
            return 0

        symbol, timeframe, callback = registration
        dispatched = 0
        for item in data:
            try:
                candle = candle_from_stream(item)
            except (ArithmeticError, KeyError, TypeError, ValueError):
                logger.debug("malformed_stream_kline", topic=topic)
                continue
            self._track(asyncio.create_task(callback(symbol, timeframe, candle)))
            dispatched += 1
        return dispatched

    def _track(self, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "kline_callback_failed",
                error=str(task.exception()),
            )
