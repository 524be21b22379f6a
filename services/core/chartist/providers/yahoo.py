"""Yahoo Finance chart API provider (primary source, reached through ProxyRelay)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from ..errors import NoDataFound
from ..utils.formatting import format_price
from ..utils.timeframes import Timeframe
from .base import Series, build_series
from .relay import ProxyRelay, RelayAttemptError


logger = logging.getLogger(__name__)

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"

# Timeframe -> (range, interval)
YAHOO_RANGES: dict[Timeframe, tuple[str, str]] = {
    Timeframe.INTRADAY: ("5d", "15m"),
    Timeframe.DAILY: ("2y", "1d"),
    Timeframe.WEEKLY: ("5y", "1wk"),
    Timeframe.MONTHLY: ("max", "1mo"),
}


def validate_chart_envelope(data: Any) -> None:
    """Reject error payloads and responses without chart.result."""
    chart = data.get("chart") if isinstance(data, dict) else None
    if not isinstance(chart, dict):
        raise RelayAttemptError("Yahoo Finance response was empty or malformed.")
    error = chart.get("error")
    if error:
        description = error.get("description") if isinstance(error, dict) else error
        raise RelayAttemptError(f"Yahoo Finance API error: {description}")
    if not chart.get("result"):
        raise RelayAttemptError("Yahoo Finance response was empty or malformed.")


def _first_result(payload: Any) -> dict[str, Any] | None:
    try:
        result = payload["chart"]["result"][0]
    except (KeyError, IndexError, TypeError):
        return None
    return result if isinstance(result, dict) else None


class YahooChartProvider:
    """Builds Yahoo chart URLs and parses chart payloads into Series/quotes."""

    name = "yahoo"

    def __init__(self, relay: ProxyRelay, base_url: str = YAHOO_CHART_URL):
        self.relay = relay
        self.base_url = base_url.rstrip("/")

    @property
    def available(self) -> bool:
        return True

    def chart_url(self, symbol: str, range_: str, interval: str) -> str:
        return f"{self.base_url}/{quote(symbol, safe='')}?range={range_}&interval={interval}"

    def series_url(self, symbol: str, timeframe: Timeframe) -> str:
        range_, interval = YAHOO_RANGES.get(timeframe, YAHOO_RANGES[Timeframe.DAILY])
        return self.chart_url(symbol, range_, interval)

    def quote_url(self, symbol: str) -> str:
        return self.chart_url(symbol, "1d", "1m")

    async def fetch_chart(self, symbol: str, range_: str, interval: str) -> Any:
        """Raw chart payload for an arbitrary range/interval."""
        return await self.relay.relay(
            self.chart_url(symbol, range_, interval),
            validate=validate_chart_envelope,
        )

    async def fetch_series(self, symbol: str, timeframe: Timeframe) -> Series:
        timeframe = Timeframe.parse(timeframe)
        logger.info(f"Fetching {timeframe.value} series for '{symbol}' from Yahoo Finance")
        payload = await self.relay.relay(
            self.series_url(symbol, timeframe),
            validate=validate_chart_envelope,
        )
        return self.parse_series(symbol, timeframe, payload)

    async def fetch_quote(self, symbol: str) -> str:
        payload = await self.relay.relay(self.quote_url(symbol), validate=validate_chart_envelope)
        return self.parse_quote(symbol, payload)

    def parse_series(self, symbol: str, timeframe: Timeframe, payload: Any) -> Series:
        """
        Convert chart.result[0] into a Series.

        Expected shape:
            {"chart": {"result": [{
                "timestamp": [...],
                "indicators": {"quote": [{"open": [...], "high": [...], "low": [...],
                                          "close": [...], "volume": [...]}]}
            }]}}
        """
        result = _first_result(payload)
        timestamps = result.get("timestamp") if result else None
        try:
            quote_arrays = result["indicators"]["quote"][0]
        except (KeyError, IndexError, TypeError):
            quote_arrays = None

        if not timestamps or not isinstance(quote_arrays, dict) or not quote_arrays.get("open"):
            raise NoDataFound(f"Could not find time series data for '{symbol}' in Yahoo Finance response.")

        return build_series(
            symbol=symbol,
            timeframe=timeframe,
            source=self.name,
            timestamps=timestamps,
            opens=quote_arrays.get("open"),
            highs=quote_arrays.get("high"),
            lows=quote_arrays.get("low"),
            closes=quote_arrays.get("close"),
            volumes=quote_arrays.get("volume"),
        )

    def parse_quote(self, symbol: str, payload: Any) -> str:
        result = _first_result(payload)
        meta = result.get("meta") if result else None
        price = meta.get("regularMarketPrice") if isinstance(meta, dict) else None
        formatted = format_price(price) if price else "N/A"
        if formatted == "N/A":
            raise NoDataFound(f"No live price found for '{symbol}' in Yahoo Finance response.")
        return formatted
