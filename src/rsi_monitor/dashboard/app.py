"""FastAPI application factory for the read-only status API."""

from typing import Any

from fastapi import FastAPI

from rsi_monitor.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create the status API application.

    Route handlers read ``app.state.tracker`` and ``app.state.orchestrator``;
    the caller (main.py lifespan, or tests) is responsible for setting them.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
    """
    app = FastAPI(title="RSI Monitor", lifespan=lifespan)
    app.state.tracker = None
    app.state.orchestrator = None
    app.include_router(api.router, prefix="/api")
    return app
