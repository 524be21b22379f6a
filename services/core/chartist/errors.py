"""Exceptions raised by market data providers and the orchestration layer."""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for all market data failures."""
    pass


class RelayExhausted(MarketDataError):
    """Raised when every forwarding intermediary failed for one request."""
    pass


class NoDataFound(MarketDataError):
    """Upstream answered but the payload has no usable series/quote data."""
    pass


class UnsupportedAsset(MarketDataError):
    """Raised when a provider refuses a symbol class before any network call."""
    pass


class ProviderUnavailable(MarketDataError):
    """Raised when a provider is not configured (e.g. missing API key)."""
    pass


class ProviderRequestError(MarketDataError):
    """Non-2xx status or network error from a direct provider request."""
    pass


class AllProvidersFailed(MarketDataError):
    """
    Terminal failure: no provider in the chain produced a series.

    Attributes:
        symbol: Asset that was requested
        attempts: (provider name, reason) for every provider in the chain
        fallback_unavailable: True if a fallback was skipped because it is not configured
    """

    def __init__(
        self,
        symbol: str,
        attempts: list[tuple[str, str]],
        fallback_unavailable: bool = False,
    ):
        self.symbol = symbol
        self.attempts = attempts
        self.fallback_unavailable = fallback_unavailable
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        if self.fallback_unavailable:
            skipped = ", ".join(f"{name}: {reason}" for name, reason in self.attempts[1:])
            return (
                f"Failed to fetch market data for '{self.symbol}': primary provider failed, "
                f"fallback unavailable ({skipped or 'no fallback configured'})."
            )
        return (
            f"Failed to fetch market data for '{self.symbol}' from all providers; "
            "the fallback also failed. The symbol may be invalid or providers are down."
        )
