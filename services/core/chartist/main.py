from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aiohttp
from fastapi import FastAPI

from .api import live as live_api
from .api import market as market_api
from .config import get_settings
from .market.service import MarketDataService, build_market_data_service
from .streaming.live_price import LivePriceMonitor


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

service: MarketDataService | None = None
monitor: LivePriceMonitor | None = None
http_session: aiohttp.ClientSession | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    global service, monitor, http_session

    # Startup: one HTTP session shared by every provider, then the monitor
    http_session = aiohttp.ClientSession()
    service = build_market_data_service(settings, session=http_session)
    monitor = LivePriceMonitor(
        service,
        poll_seconds=settings.live_poll_seconds,
        max_failures=settings.live_max_failures,
    )
    market_api.set_service(service)
    live_api.set_monitor(monitor)

    yield

    # Shutdown: stop polling gracefully
    if monitor:
        await monitor.aclose()
    if http_session:
        await http_session.close()


app = FastAPI(
    title="Chartist Market Data API",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(market_api.router)
app.include_router(live_api.router)


@app.get("/health")
async def health() -> dict[str, Any]:
    return {"ok": True, "ts": int(time.time())}


@app.get("/v1/providers")
async def get_providers() -> dict[str, Any]:
    """Provider chain, fallback availability and relay configuration."""
    return {
        "chain": service.describe() if service else [],
        "fallback_available": bool(settings.finnhub_api_key),
        "relay": {
            "intermediaries": [
                {"prefix": i.prefix, "encode": i.encode}
                for i in settings.get_relay_intermediaries()
            ],
            "timeout_seconds": settings.relay_timeout_seconds,
        },
        "live": {
            "poll_seconds": settings.live_poll_seconds,
            "max_failures": settings.live_max_failures,
        },
    }
