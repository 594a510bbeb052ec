"""Discord webhook notifier.

Alerts are rendered as a single embed: per-timeframe colour, symbol link,
signal values, funding rate, bias and chart links for Bybit, TradingView and
MEXC. Composite (multi-timeframe) alerts always use green and 1-minute links.
"""

from datetime import datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from rsi_monitor.config import DiscordSettings
from rsi_monitor.logging import get_logger
from rsi_monitor.notifications.base import NotificationSink

logger = get_logger(__name__)

# Embed colours (decimal RGB)
_TIMEFRAME_COLORS = {
    "4h": 16711680,  # red
    "1h": 16776960,  # yellow
    "15m": 16711935,  # pink
    "1m": 8388736,  # violet
}
_DEFAULT_COLOR = 16711680
_COMPOSITE_COLOR = 65280  # green

# Chart interval parameter used by the exchange / TradingView links
_CHART_INTERVALS = {"4h": "4H", "1h": "1H", "15m": "15", "1m": "1"}
_TIMEFRAME_LABELS = {"4h": "4H", "1h": "1H", "15m": "15M", "1m": "1M"}

_DISCLAIMER = (
    "⚠️ These alerts are informational only and not profit guarantees or "
    "financial advice. Always DYOR before entering any trade!"
)


def format_funding_rate(rate: Decimal | None) -> str:
    """Funding rate as a percentage with 4 decimals, or ``N/A``."""
    if rate is None:
        return "N/A"
    pct = (rate * 100).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    return f"{pct}%"


def chart_links(symbol: str, interval: str) -> dict[str, str]:
    """Chart URLs for one symbol at a chart interval parameter."""
    return {
        "bybit": f"https://www.bybit.com/trade/usdt/{symbol}?interval={interval}",
        "tradingview": (
            f"https://www.tradingview.com/chart/?symbol=BYBIT:{symbol}.P"
            f"&interval={interval}"
        ),
        "mexc": f"https://www.mexc.com/exchange/{symbol}_USDT?interval={interval}",
    }


def _timeframe_label(timeframe: str) -> str:
    return _TIMEFRAME_LABELS.get(timeframe.lower(), timeframe.upper())


class DiscordNotifier(NotificationSink):
    """Delivers alert embeds to a Discord webhook.

    Any 2xx response counts as delivered (Discord answers 204 for webhooks
    without ``?wait=true``). Transport errors and other status codes are
    logged and reported as ``False``.

    Args:
        settings: Webhook URL, display strings, timeout and footer timezone.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            backed by ``httpx.MockTransport``).
    """

    def __init__(
        self,
        settings: DiscordSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        try:
            self._tz: tzinfo = ZoneInfo(settings.timezone)
        except ZoneInfoNotFoundError:
            logger.warning("discord_timezone_unknown", timezone=settings.timezone)
            self._tz = timezone.utc

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _footer(self) -> str:
        now = datetime.now(self._tz)
        clock = now.strftime("%I:%M %p").lstrip("0")
        return f"⚡ Powered by {self._settings.footer_brand} • Today at {clock}"

    def _payload(self, description: str, color: int) -> dict[str, Any]:
        embed = {
            "title": self._settings.title,
            "description": description,
            "color": color,
            "footer": {"text": self._footer()},
        }
        return {"embeds": [embed], "username": self._settings.username}

    # ──────────────────────────────────────────────
    # Rendering
    # ──────────────────────────────────────────────

    def build_single_payload(
        self,
        symbol: str,
        signal: Decimal,
        timeframe: str,
        funding_rate: Decimal | None,
        bias: str,
    ) -> dict[str, Any]:
        tf = timeframe.lower()
        links = chart_links(symbol, _CHART_INTERVALS.get(tf, "4H"))
        description = (
            f"🪙 **Symbol:** [{symbol}]({links['bybit']})\n"
            f"⏱️ **Timeframe:** {tf}\n"
            f"📊 **RSI:** {signal} (TF{_timeframe_label(tf)})\n"
            f"💱 **Funding Rate:** {format_funding_rate(funding_rate)}\n"
            f"🎯 **Bias:** {bias}\n\n"
            f"**Trade on:** [Tradingview]({links['tradingview']}) | "
            f"[Bybit]({links['bybit']}) | [Mexc]({links['mexc']})\n\n"
            f"{_DISCLAIMER}"
        )
        return self._payload(description, _TIMEFRAME_COLORS.get(tf, _DEFAULT_COLOR))

    def build_composite_payload(
        self,
        symbol: str,
        signal_fast: Decimal,
        signal_other: Decimal,
        pair_label: str,
        funding_rate: Decimal | None,
        bias: str,
    ) -> dict[str, Any]:
        other_tf, _, fast_tf = pair_label.partition("+")
        other_label = _timeframe_label(other_tf)
        fast_label = _timeframe_label(fast_tf)
        links = chart_links(symbol, "1")
        description = (
            f"🪙 **Symbol:** [{symbol}]({links['bybit']})\n"
            f"⏱️ **Timeframes:** {other_label} + {fast_label}\n"
            f"📊 **RSI {other_label}:** {signal_other} | "
            f"**RSI {fast_label}:** {signal_fast}\n"
            f"💱 **Funding Rate:** {format_funding_rate(funding_rate)}\n"
            f"🎯 **Bias:** {bias}\n\n"
            f"**Trade on:** [Tradingview]({links['tradingview']}) | "
            f"[Bybit]({links['bybit']}) | [Mexc]({links['mexc']})\n\n"
            f"{_DISCLAIMER}"
        )
        return self._payload(description, _COMPOSITE_COLOR)

    # ──────────────────────────────────────────────
    # Delivery
    # ──────────────────────────────────────────────

    async def _post(self, payload: dict[str, Any], **log_fields: Any) -> bool:
        if not self._settings.webhook_url:
            logger.warning("notification_failed", reason="webhook_not_configured", **log_fields)
            return False
        try:
            response = await self._get_client().post(
                self._settings.webhook_url,
                json=payload,
                timeout=self._settings.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("notification_failed", error=str(e), **log_fields)
            return False

        if response.is_success:
            logger.info("notification_sent", status=response.status_code, **log_fields)
            return True
        logger.error(
            "notification_failed",
            status=response.status_code,
            body=response.text[:200],
            **log_fields,
        )
        return False

    async def send_single_alert(
        self,
        symbol: str,
        signal: Decimal,
        timeframe: str,
        funding_rate: Decimal | None = None,
        bias: str = "SHORT",
    ) -> bool:
        payload = self.build_single_payload(symbol, signal, timeframe, funding_rate, bias)
        return await self._post(payload, symbol=symbol, timeframe=timeframe, signal=str(signal))

    async def send_composite_alert(
        self,
        symbol: str,
        signal_fast: Decimal,
        signal_other: Decimal,
        pair_label: str,
        funding_rate: Decimal | None = None,
        bias: str = "SHORT",
    ) -> bool:
        payload = self.build_composite_payload(
            symbol, signal_fast, signal_other, pair_label, funding_rate, bias
        )
        return await self._post(payload, symbol=symbol, timeframe=pair_label, composite=True)
