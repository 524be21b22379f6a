"""Live price monitor control routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..market.service import normalize_symbol
from ..streaming.live_price import LivePriceMonitor

router = APIRouter(prefix="/v1/live", tags=["Live price"])

_monitor: LivePriceMonitor | None = None


def set_monitor(monitor: LivePriceMonitor) -> None:
    """Set the monitor reference (called from main.py)."""
    global _monitor
    _monitor = monitor


def get_monitor() -> LivePriceMonitor:
    if _monitor is None:
        raise HTTPException(status_code=503, detail="Live price monitor not initialized")
    return _monitor


class StartRequest(BaseModel):
    symbol: str = Field(..., description="Ticker to poll (e.g., AAPL)")


def _snapshot(monitor: LivePriceMonitor) -> dict:
    snap = monitor.snapshot()
    return {
        "state": snap.state.value,
        "symbol": snap.symbol,
        "price": snap.price,
        "halted": snap.halted,
        "ts": snap.ts,
    }


@router.get("")
async def live_status() -> dict:
    return _snapshot(get_monitor())


@router.post("/start")
async def start_live(req: StartRequest) -> dict:
    """Start (or restart) polling. Any previous session is stopped."""
    monitor = get_monitor()
    try:
        symbol = normalize_symbol(req.symbol)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    monitor.start(symbol)
    return _snapshot(monitor)


@router.post("/stop")
async def stop_live() -> dict:
    monitor = get_monitor()
    monitor.stop()
    return _snapshot(monitor)
