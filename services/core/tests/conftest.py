"""Shared fakes for HTTP sessions and market data payloads."""

import pytest


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status=200, payload=None):
        self.status = status
        self.payload = payload

    async def json(self, content_type="application/json"):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Returns scripted outcomes in order; exceptions are raised from get()."""

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.urls = []
        self.kwargs = []

    def get(self, url, **kwargs):
        self.urls.append(url)
        self.kwargs.append(kwargs)
        if not self.outcomes:
            raise AssertionError(f"Unexpected request to {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def chart_payload(timestamps, opens, highs, lows, closes, volumes, price=None):
    result = {
        "meta": {"regularMarketPrice": price},
        "timestamp": timestamps,
        "indicators": {
            "quote": [
                {"open": opens, "high": highs, "low": lows, "close": closes, "volume": volumes}
            ]
        },
    }
    return {"chart": {"result": [result], "error": None}}


@pytest.fixture
def abc_daily_payload():
    """4 daily rows, the third has a null close."""
    return chart_payload(
        timestamps=[1704067200, 1704153600, 1704240000, 1704326400],
        opens=[100.0, 101.0, 102.0, 103.0],
        highs=[101.5, 102.5, 103.5, 104.5],
        lows=[99.5, 100.5, 101.5, 102.5],
        closes=[101.0, 100.75, None, 104.0],
        volumes=[1000, None, 1200, 1300],
        price=104.0,
    )


@pytest.fixture
def quote_payload():
    return chart_payload([1704067200], [1.0], [1.0], [1.0], [1.0], [1], price=187.456)


@pytest.fixture
def finnhub_candles():
    return {
        "s": "ok",
        "t": [1704067200, 1704153600],
        "o": [470.0, 472.0],
        "h": [475.0, 474.0],
        "l": [469.0, 468.5],
        "c": [474.5, 469.0],
        "v": [5000000, 4200000],
    }
