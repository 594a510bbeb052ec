"""Tests for DiscordNotifier using httpx.MockTransport."""

import json
from datetime import timezone
from decimal import Decimal

import httpx
import pytest

from rsi_monitor.config import DiscordSettings
from rsi_monitor.notifications.discord import DiscordNotifier, chart_links, format_funding_rate


def _notifier(settings: DiscordSettings, handler) -> tuple[DiscordNotifier, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    return DiscordNotifier(settings, client=client), requests


class TestFormatting:

    def test_funding_rate_percent(self) -> None:
        assert format_funding_rate(Decimal("0.0001")) == "0.0100%"
        assert format_funding_rate(Decimal("-0.00012345")) == "-0.0123%"
        assert format_funding_rate(None) == "N/A"

    def test_chart_links(self) -> None:
        links = chart_links("BTCUSDT", "4H")
        assert links["bybit"] == "https://www.bybit.com/trade/usdt/BTCUSDT?interval=4H"
        assert links["tradingview"] == (
            "https://www.tradingview.com/chart/?symbol=BYBIT:BTCUSDT.P&interval=4H"
        )
        assert links["mexc"] == "https://www.mexc.com/exchange/BTCUSDT_USDT?interval=4H"

    @pytest.mark.parametrize(
        ("timeframe", "color", "label"),
        [("4h", 16711680, "TF4H"), ("1h", 16776960, "TF1H"), ("15m", 16711935, "TF15M"), ("1m", 8388736, "TF1M")],
    )
    def test_single_embed_per_timeframe(
        self, discord_settings: DiscordSettings, timeframe: str, color: int, label: str
    ) -> None:
        notifier = DiscordNotifier(discord_settings)
        payload = notifier.build_single_payload("BTCUSDT", Decimal("91.23"), timeframe, None, "SHORT")

        embed = payload["embeds"][0]
        assert embed["color"] == color
        assert f"91.23 ({label})" in embed["description"]
        assert "N/A" in embed["description"]
        assert payload["username"] == "DYNASTY FUTURES BOT"
        assert "Powered by DYNASTY" in embed["footer"]["text"]

    def test_composite_embed(self, discord_settings: DiscordSettings) -> None:
        notifier = DiscordNotifier(discord_settings)
        payload = notifier.build_composite_payload(
            "ETHUSDT", Decimal("88.00"), Decimal("90.50"), "1h+1m", Decimal("0.0002"), "SHORT"
        )

        embed = payload["embeds"][0]
        assert embed["color"] == 65280
        assert "1H + 1M" in embed["description"]
        assert "**RSI 1H:** 90.50 | **RSI 1M:** 88.00" in embed["description"]
        assert "0.0200%" in embed["description"]
        assert "interval=1)" in embed["description"]

    def test_unknown_timezone_falls_back(self) -> None:
        notifier = DiscordNotifier(DiscordSettings(timezone="Not/AZone"))
        assert notifier._tz is timezone.utc


class TestDelivery:

    @pytest.mark.asyncio
    async def test_204_is_success(self, discord_settings: DiscordSettings) -> None:
        notifier, requests = _notifier(discord_settings, lambda r: httpx.Response(204))

        ok = await notifier.send_single_alert("BTCUSDT", Decimal("90"), "1h", Decimal("0.0001"))

        assert ok is True
        (request,) = requests
        assert str(request.url) == discord_settings.webhook_url
        body = json.loads(request.content)
        assert body["embeds"][0]["color"] == 16776960

    @pytest.mark.asyncio
    async def test_200_is_success(self, discord_settings: DiscordSettings) -> None:
        notifier, _ = _notifier(discord_settings, lambda r: httpx.Response(200, json={"id": "1"}))
        assert await notifier.send_composite_alert(
            "BTCUSDT", Decimal("90"), Decimal("91"), "4h+1m"
        ) is True

    @pytest.mark.asyncio
    async def test_error_status_is_failure(self, discord_settings: DiscordSettings) -> None:
        notifier, _ = _notifier(discord_settings, lambda r: httpx.Response(429, text="rate limited"))
        assert await notifier.send_single_alert("BTCUSDT", Decimal("90"), "1h") is False

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self, discord_settings: DiscordSettings) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        notifier, _ = _notifier(discord_settings, boom)
        assert await notifier.send_single_alert("BTCUSDT", Decimal("90"), "1h") is False

    @pytest.mark.asyncio
    async def test_missing_webhook_is_failure(self) -> None:
        notifier, requests = _notifier(DiscordSettings(webhook_url=""), lambda r: httpx.Response(204))

        assert await notifier.send_single_alert("BTCUSDT", Decimal("90"), "1h") is False
        assert requests == []

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self, discord_settings: DiscordSettings) -> None:
        notifier, _ = _notifier(discord_settings, lambda r: httpx.Response(204))
        await notifier.close()
        assert await notifier.send_single_alert("BTCUSDT", Decimal("90"), "1h") is True
