"""Per-(symbol, timeframe) rolling candle windows and last computed signal.

Each key owns a fixed-capacity ring buffer (``collections.deque`` with
``maxlen``) so eviction is FIFO and implicit. Writes go through one of two
paths only:

- ``ingest_live_candle``: append a new period, or amend the in-progress last
  period in place (same timestamp). Older timestamps are discarded.
- ``replace_window``: wholesale replacement after a REST re-poll.

Each key also carries its own ``asyncio.Lock``. Callers that read-modify-write
a key (ingest + evaluate) hold that lock so updates for the same key are
applied one at a time, in arrival order, while other keys proceed freely.
"""

import asyncio
import time
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from rsi_monitor.logging import get_logger
from rsi_monitor.models import Candle

logger = get_logger(__name__)

Key = tuple[str, str]


@dataclass
class TimeframeWindow:
    """Rolling candle window and signal state for one (symbol, timeframe)."""

    candles: deque[Candle]
    last_signal: Decimal | None = None
    last_checked_at: float = 0.0  # time.monotonic() of the last REST refresh
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class TimeframeStateStore:
    """Keyed store of bounded candle windows.

    Args:
        capacity: Maximum candles retained per key (signal period + buffer).
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._windows: dict[Key, TimeframeWindow] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def _window(self, symbol: str, timeframe: str) -> TimeframeWindow:
        key = (symbol, timeframe)
        window = self._windows.get(key)
        if window is None:
            window = TimeframeWindow(candles=deque(maxlen=self._capacity))
            self._windows[key] = window
        return window

    def register(self, symbol: str, timeframe: str) -> None:
        """Create an empty window for a key (idempotent)."""
        self._window(symbol, timeframe)

    def has_window(self, symbol: str, timeframe: str) -> bool:
        return (symbol, timeframe) in self._windows

    def keys(self) -> list[Key]:
        return list(self._windows)

    def symbols(self) -> list[str]:
        return list(dict.fromkeys(symbol for symbol, _ in self._windows))

    def lock(self, symbol: str, timeframe: str) -> asyncio.Lock:
        """Per-key lock enforcing single-writer, in-order processing."""
        return self._window(symbol, timeframe).lock

    # ──────────────────────────────────────────────
    # Write paths
    # ──────────────────────────────────────────────

    def ingest_live_candle(self, symbol: str, timeframe: str, candle: Candle) -> bool:
        """Append or amend the latest candle.

        Returns:
            True if the window changed, False if the candle was older than the
            current last period and therefore discarded.
        """
        candles = self._window(symbol, timeframe).candles
        if not candles:
            candles.append(candle)
            return True

        last = candles[-1]
        if candle.timestamp == last.timestamp:
            candles[-1] = candle
            return True
        if candle.timestamp > last.timestamp:
            candles.append(candle)  # deque maxlen evicts the oldest
            return True

        logger.debug(
            "stale_candle_discarded",
            symbol=symbol,
            timeframe=timeframe,
            candle_ts=candle.timestamp,
            last_ts=last.timestamp,
        )
        return False

    def replace_window(
        self, symbol: str, timeframe: str, candles: Iterable[Candle]
    ) -> None:
        """Replace the whole window (keeps the newest ``capacity`` candles)."""
        window = self._window(symbol, timeframe)
        window.candles = deque(candles, maxlen=self._capacity)
        window.last_checked_at = time.monotonic()

    # ──────────────────────────────────────────────
    # Read paths
    # ──────────────────────────────────────────────

    def candles(self, symbol: str, timeframe: str) -> list[Candle]:
        window = self._windows.get((symbol, timeframe))
        return list(window.candles) if window is not None else []

    def closes(self, symbol: str, timeframe: str) -> list[Decimal]:
        return [c.close for c in self.candles(symbol, timeframe)]

    def latest_close(self, symbol: str, timeframe: str) -> Decimal | None:
        window = self._windows.get((symbol, timeframe))
        if window is None or not window.candles:
            return None
        return window.candles[-1].close

    def last_checked_at(self, symbol: str, timeframe: str) -> float:
        """Monotonic time of the last REST refresh (0.0 if never refreshed)."""
        window = self._windows.get((symbol, timeframe))
        return window.last_checked_at if window is not None else 0.0

    def last_signal(self, symbol: str, timeframe: str) -> Decimal | None:
        window = self._windows.get((symbol, timeframe))
        return window.last_signal if window is not None else None

    def set_last_signal(
        self, symbol: str, timeframe: str, value: Decimal | None
    ) -> Decimal | None:
        """Store the latest signal and return the previous one."""
        window = self._window(symbol, timeframe)
        previous = window.last_signal
        window.last_signal = value
        return previous
