"""Entry point for the RSI overbought monitor.

Wires all components together, optionally embeds the FastAPI status API, and
starts the orchestrator. When the API is enabled, the monitor and the API
share one asyncio event loop via uvicorn's programmatic server and FastAPI's
lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. BybitKlineStream + BybitClient (market data)
2. TimeframeStateStore (candle windows)
3. AlertTracker (alert log + outcome tracking)
4. DiscordNotifier (alert delivery)
5. TriggerEngine (dedup + decisions)
6. Orchestrator (startup initialization + periodic loop)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from rsi_monitor.config import AppSettings
from rsi_monitor.engine.trigger import TriggerEngine
from rsi_monitor.exceptions import NoSymbolsError
from rsi_monitor.exchange.bybit_client import BybitClient
from rsi_monitor.exchange.stream import BybitKlineStream
from rsi_monitor.logging import get_logger, setup_logging
from rsi_monitor.market_data.window_store import TimeframeStateStore
from rsi_monitor.notifications.discord import DiscordNotifier
from rsi_monitor.orchestrator import Orchestrator
from rsi_monitor.tracker.outcome import AlertTracker


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the component graph. Does NOT connect to the exchange."""
    logger = get_logger("rsi_monitor.main")

    stream = BybitKlineStream(settings.stream, testnet=settings.exchange.testnet)
    feed = BybitClient(settings.exchange, settings.retry, stream=stream)
    store = TimeframeStateStore(settings.monitor.window_size)
    tracker = AlertTracker(settings.tracker)

    if not settings.discord.webhook_url:
        logger.warning(
            "discord_webhook_missing",
            note="Alerts will be evaluated but every delivery will fail.",
        )
    notifier = DiscordNotifier(settings.discord)

    engine = TriggerEngine(
        store=store,
        feed=feed,
        notifier=notifier,
        tracker=tracker,
        settings=settings.monitor,
        liquidity=settings.liquidity,
        bias=settings.discord.bias,
    )
    orchestrator = Orchestrator(
        settings=settings,
        feed=feed,
        store=store,
        engine=engine,
        tracker=tracker,
    )

    return {
        "feed": feed,
        "store": store,
        "tracker": tracker,
        "notifier": notifier,
        "engine": engine,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """Register SIGINT/SIGTERM for graceful stop. Needs a running loop."""
    logger = get_logger("rsi_monitor.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _shutdown(components: dict[str, Any]) -> None:
    await components["orchestrator"].stop()
    await components["notifier"].close()
    await components["feed"].close()


async def _run_orchestrator(orchestrator: Orchestrator) -> None:
    try:
        await orchestrator.start()
    except NoSymbolsError as e:
        get_logger("rsi_monitor.main").error("startup_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the monitor as a background task for the lifetime of the API."""
    logger = get_logger("rsi_monitor.main")
    components = app.state.components

    app.state.tracker = components["tracker"]
    app.state.orchestrator = components["orchestrator"]

    await components["feed"].connect()
    monitor_task = asyncio.create_task(_run_orchestrator(components["orchestrator"]))
    logger.info("lifespan_started")

    yield

    await _shutdown(components)
    monitor_task.cancel()
    try:
        await monitor_task
    except asyncio.CancelledError:
        pass
    logger.info("rsi_monitor_stopped")


async def run() -> None:
    """Run the monitor, with or without the status API."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("rsi_monitor.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from rsi_monitor.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )
        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",
        )
        await uvicorn.Server(config).serve()
        return

    _setup_signal_handlers(components["orchestrator"])
    logger.info(
        "starting_without_dashboard",
        threshold=str(settings.monitor.rsi_threshold),
        timeframes=settings.monitor.timeframes,
    )
    try:
        await components["feed"].connect()
        await _run_orchestrator(components["orchestrator"])
    finally:
        await _shutdown(components)
        logger.info("rsi_monitor_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
