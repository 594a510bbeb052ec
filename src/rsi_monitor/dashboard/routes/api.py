"""JSON endpoints: alert statistics, alert log and monitor status."""

from dataclasses import asdict
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from rsi_monitor.models import AlertStatus

router = APIRouter()


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


@router.get("/stats")
async def get_stats(request: Request) -> JSONResponse:
    """Aggregate outcome statistics plus the per-timeframe breakdown."""
    tracker = request.app.state.tracker
    stats = asdict(tracker.statistics())
    stats["by_timeframe"] = tracker.timeframe_breakdown()
    return JSONResponse(content=_decimal_to_str(stats))


@router.get("/alerts")
async def get_alerts(
    request: Request,
    status: AlertStatus | None = None,
    symbol: str | None = None,
    limit: int = Query(default=20, ge=1, le=500),
) -> JSONResponse:
    """Alert records, newest first, optionally filtered by status and symbol."""
    tracker = request.app.state.tracker
    alerts = tracker.recent(len(tracker.alerts))
    if status is not None:
        alerts = [a for a in alerts if a.status == status]
    if symbol is not None:
        alerts = [a for a in alerts if a.symbol == symbol.upper()]
    return JSONResponse(content=[a.to_dict() for a in alerts[:limit]])


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        return JSONResponse(content={"running": False})
    return JSONResponse(content=orchestrator.status())
