"""Finnhub REST provider (fallback source, called directly with an API token)."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Callable, Sequence
from urllib.parse import urlencode

import aiohttp

from ..errors import NoDataFound, ProviderRequestError, ProviderUnavailable, UnsupportedAsset
from ..utils.formatting import format_price
from ..utils.timeframes import Timeframe
from .base import Series, build_series


logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"

# Index/commodity symbols -> tradeable proxies that the free tier serves reliably
FINNHUB_SYMBOL_MAP: dict[str, str] = {
    "^GSPC": "SPY",
    "^DJI": "DIA",
    "^NDX": "QQQ",
    "^FTSE": "EWU",
    "^GDAXI": "EWG",
    "^N225": "EWJ",
    "^HSI": "EWH",
    "^NSEI": "INDA",
    "GC=F": "GLD",
    "SI=F": "SLV",
    "CL=F": "USO",
    "NG=F": "UNG",
    "HG=F": "CPER",
}

# NSE India listings
DEFAULT_UNSUPPORTED_SUFFIXES: tuple[str, ...] = (".NS",)

# Timeframe -> (resolution, lookback)
FINNHUB_RESOLUTIONS: dict[Timeframe, tuple[str, timedelta]] = {
    Timeframe.INTRADAY: ("15", timedelta(days=5)),
    Timeframe.DAILY: ("D", timedelta(days=2 * 365)),
    Timeframe.WEEKLY: ("W", timedelta(days=5 * 365)),
    Timeframe.MONTHLY: ("M", timedelta(days=20 * 365)),
}


def map_symbol(symbol: str) -> str:
    """Translate a Yahoo-style identifier to its Finnhub equivalent."""
    return FINNHUB_SYMBOL_MAP.get(symbol, symbol)


class FinnhubProvider:
    """Fallback provider for candles and quotes."""

    name = "finnhub"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = FINNHUB_BASE_URL,
        timeout_seconds: float = 30.0,
        unsupported_suffixes: Sequence[str] = DEFAULT_UNSUPPORTED_SUFFIXES,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            api_key: Finnhub token; None/empty disables the provider
            base_url: API root
            timeout_seconds: Total timeout per request
            unsupported_suffixes: Symbol suffixes refused without a network call
            session: Optional shared session (not closed by the provider)
            clock: Returns the current epoch time (injectable for tests)
        """
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.unsupported_suffixes = tuple(unsupported_suffixes)
        self._session = session
        self._clock = clock

    @property
    def available(self) -> bool:
        return self.api_key is not None

    @property
    def unavailable_reason(self) -> str:
        return "no API key configured"

    def _check_symbol(self, symbol: str) -> None:
        if not self.available:
            raise ProviderUnavailable(f"Finnhub fallback unavailable: {self.unavailable_reason}.")
        if symbol.endswith(self.unsupported_suffixes):
            raise UnsupportedAsset(
                f"Finnhub fallback is not supported for '{symbol}' on the current plan."
            )

    def candle_url(self, symbol: str, timeframe: Timeframe) -> str:
        resolution, lookback = FINNHUB_RESOLUTIONS.get(timeframe, FINNHUB_RESOLUTIONS[Timeframe.DAILY])
        to_ts = int(self._clock())
        from_ts = to_ts - int(lookback.total_seconds())
        params = {
            "symbol": map_symbol(symbol),
            "resolution": resolution,
            "from": from_ts,
            "to": to_ts,
            "token": self.api_key or "",
        }
        return f"{self.base_url}/stock/candle?{urlencode(params)}"

    def quote_url(self, symbol: str) -> str:
        params = {"symbol": map_symbol(symbol), "token": self.api_key or ""}
        return f"{self.base_url}/quote?{urlencode(params)}"

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    async def _get_json(self, url: str, symbol: str) -> Any:
        # url carries the token; log the symbol only
        try:
            async with self._session_scope() as session:
                async with session.get(url, timeout=self.timeout) as response:
                    if response.status != 200:
                        raise ProviderRequestError(
                            f"Finnhub request for {symbol} failed with status {response.status}"
                        )
                    return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProviderRequestError(f"Finnhub request for {symbol} timed out") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise ProviderRequestError(f"Finnhub request for {symbol} failed: {e}") from e

    async def fetch_series(self, symbol: str, timeframe: Timeframe) -> Series:
        self._check_symbol(symbol)
        timeframe = Timeframe.parse(timeframe)
        finnhub_symbol = map_symbol(symbol)
        logger.info(f"Fetching {timeframe.value} series for '{symbol}' from Finnhub as '{finnhub_symbol}'")

        data = await self._get_json(self.candle_url(symbol, timeframe), finnhub_symbol)
        return self.parse_series(symbol, timeframe, data)

    async def fetch_quote(self, symbol: str) -> str:
        self._check_symbol(symbol)
        data = await self._get_json(self.quote_url(symbol), map_symbol(symbol))
        return self.parse_quote(symbol, data)

    def parse_series(self, symbol: str, timeframe: Timeframe, data: Any) -> Series:
        """
        Convert a /stock/candle payload into a Series.

        Finnhub signals empty results with {"s": "no_data"} rather than an empty array.
        """
        if not isinstance(data, dict) or data.get("s") == "no_data" or not data.get("t"):
            raise NoDataFound(
                f"Could not find time series data for '{map_symbol(symbol)}' in Finnhub response."
            )
        return build_series(
            symbol=symbol,
            timeframe=timeframe,
            source=self.name,
            timestamps=data["t"],
            opens=data.get("o"),
            highs=data.get("h"),
            lows=data.get("l"),
            closes=data.get("c"),
            volumes=data.get("v"),
        )

    def parse_quote(self, symbol: str, data: Any) -> str:
        price = data.get("c") if isinstance(data, dict) else None
        formatted = format_price(price) if price else "N/A"
        if formatted == "N/A":
            raise NoDataFound(f"No live price found for '{symbol}' in Finnhub response.")
        return formatted
