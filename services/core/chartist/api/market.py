"""Series / quote / analysis-context routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from ..errors import AllProvidersFailed
from ..market.relative_strength import compute_relative_strength
from ..market.service import MarketDataService, normalize_symbol
from ..providers.yahoo import YahooChartProvider
from ..utils.timeframes import Timeframe

router = APIRouter(prefix="/v1", tags=["Market data"])

# Global service reference (will be set by main.py)
_service: MarketDataService | None = None


def set_service(service: MarketDataService) -> None:
    """Set the service reference (called from main.py)."""
    global _service
    _service = service


def get_service() -> MarketDataService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Market data service not initialized")
    return _service


def _clean_symbol(symbol: str) -> str:
    try:
        return normalize_symbol(symbol)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/series")
async def get_series(
    symbol: str = Query(..., description="Ticker, e.g. AAPL, ^GSPC, RELIANCE.NS"),
    timeframe: str = Query("Daily", description="Intraday | Daily | Weekly | Monthly"),
) -> dict:
    """Historical candles + volume. 502 when every provider failed."""
    service = get_service()
    symbol = _clean_symbol(symbol)
    try:
        series = await service.fetch_series(symbol, Timeframe.parse(timeframe))
    except AllProvidersFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return series.to_dict()


@router.get("/quote")
async def get_quote(symbol: str) -> dict:
    """Current price; `price` is null when no provider could supply one."""
    service = get_service()
    symbol = _clean_symbol(symbol)
    return {"symbol": symbol, "price": await service.fetch_quote(symbol)}


@router.get("/context")
async def get_analysis_context(symbol: str, timeframe: str = "Daily") -> dict:
    """
    Market-data summary handed to the report generator.

    Returns the CSV projection of the series and, when the primary source can
    provide it, the 3-month relative strength block.
    """
    service = get_service()
    symbol = _clean_symbol(symbol)
    tf = Timeframe.parse(timeframe)
    try:
        series = await service.fetch_series(symbol, tf)
    except AllProvidersFailed as e:
        raise HTTPException(status_code=502, detail=str(e))

    relative_strength = None
    yahoo = next((p for p in service.providers if isinstance(p, YahooChartProvider)), None)
    if yahoo is not None:
        rs = await compute_relative_strength(yahoo, symbol)
        if rs is not None:
            relative_strength = {
                "benchmark": rs.benchmark.name,
                "asset_performance_3m": rs.asset_performance,
                "benchmark_performance_3m": rs.benchmark_performance,
                "prompt": rs.to_prompt(),
            }

    return {
        "symbol": symbol,
        "timeframe": tf.value,
        "source": series.source,
        "csv": series.csv,
        "relative_strength": relative_strength,
    }
