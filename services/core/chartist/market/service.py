"""Provider fallback orchestration for series and quote requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import aiohttp

from ..config import Settings
from ..errors import AllProvidersFailed
from ..providers.base import MarketDataProvider, Series
from ..providers.finnhub import FinnhubProvider
from ..providers.relay import ProxyRelay
from ..providers.yahoo import YahooChartProvider
from ..utils.timeframes import Timeframe


logger = logging.getLogger(__name__)


def normalize_symbol(symbol: str | None) -> str:
    """Strip whitespace; raise ValueError for an empty identifier."""
    cleaned = (symbol or "").strip()
    if not cleaned:
        raise ValueError("Asset symbol must be a non-empty string.")
    return cleaned


class MarketDataService:
    """
    Tries providers strictly in order; the first success wins.

    Stateless per call. Individual provider failures are logged, never raised;
    callers only see the final outcome.
    """

    def __init__(self, providers: Sequence[MarketDataProvider]):
        self.providers = list(providers)

    async def fetch_series(self, symbol: str, timeframe: Timeframe | str) -> Series:
        """
        Fetch historical series, falling back through the provider chain.

        Raises:
            ValueError: empty symbol
            AllProvidersFailed: no provider returned a series
        """
        symbol = normalize_symbol(symbol)
        timeframe = Timeframe.parse(timeframe)

        attempts: list[tuple[str, str]] = []

        for index, provider in enumerate(self.providers):
            if not provider.available:
                reason = getattr(provider, "unavailable_reason", "not configured")
                logger.error(f"{provider.name} unavailable for '{symbol}' ({reason}). Skipping.")
                attempts.append((provider.name, reason))
                continue

            if index > 0:
                logger.info(f"Falling back to {provider.name} for '{symbol}'...")
            try:
                series = await provider.fetch_series(symbol, timeframe)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Failed to fetch market data for '{symbol}' from {provider.name}: {e}")
                attempts.append((provider.name, str(e)))
                continue

            logger.info(
                f"Fetched {len(series.candles)} {timeframe.value} bars for '{symbol}' from {provider.name}"
            )
            return series

        raise AllProvidersFailed(
            symbol,
            attempts,
            fallback_unavailable=not any(p.available for p in self.providers[1:]),
        )

    async def fetch_quote(self, symbol: str | None) -> str | None:
        """Current price as a two-decimal string, or None if no provider can supply one."""
        try:
            symbol = normalize_symbol(symbol)
        except ValueError:
            return None

        for provider in self.providers:
            if not provider.available:
                continue
            try:
                return await provider.fetch_quote(symbol)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Failed to fetch live price for '{symbol}' from {provider.name}: {e}")

        return None

    def describe(self) -> list[dict[str, Any]]:
        """Provider chain with availability, for status endpoints."""
        return [
            {"name": p.name, "priority": i, "available": p.available}
            for i, p in enumerate(self.providers)
        ]


def build_market_data_service(
    settings: Settings,
    relay: ProxyRelay | None = None,
    session: aiohttp.ClientSession | None = None,
) -> MarketDataService:
    """
    Default chain: Yahoo (through the relay) then Finnhub.

    Pass one long-lived session to share its connection pool across every
    request; the caller owns it and closes it on shutdown.
    """
    relay = relay or ProxyRelay(
        intermediaries=settings.get_relay_intermediaries(),
        timeout_seconds=settings.relay_timeout_seconds,
        session=session,
    )
    yahoo = YahooChartProvider(relay, base_url=settings.yahoo_chart_url)
    finnhub = FinnhubProvider(
        api_key=settings.finnhub_api_key,
        base_url=settings.finnhub_base_url,
        timeout_seconds=settings.finnhub_timeout_seconds,
        unsupported_suffixes=settings.get_unsupported_suffixes(),
        session=session,
    )
    if not finnhub.available:
        logger.warning("FINNHUB_API_KEY not set. Finnhub fallback is disabled.")
    return MarketDataService([yahoo, finnhub])
