"""Base types and protocols for market data providers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from ..utils.formatting import format_date
from ..utils.timeframes import Timeframe


CSV_HEADER = "Date,Open,High,Low,Close,Volume"


@dataclass(frozen=True)
class Candle:
    """One OHLC bar. Upstream values are passed through unvalidated."""
    time: int  # Unix timestamp in seconds (start of the bar)
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class VolumePoint:
    """Volume for the bar with the same time as the matching Candle."""
    time: int
    volume: int
    direction: str  # "up" if close >= open, else "down"


@dataclass
class Series:
    """Historical candles + volume for one symbol/timeframe, ascending by time."""
    symbol: str
    timeframe: Timeframe
    source: str
    candles: list[Candle] = field(default_factory=list)
    volumes: list[VolumePoint] = field(default_factory=list)
    csv: str = CSV_HEADER + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe.value,
            "source": self.source,
            "candles": [vars(c) for c in self.candles],
            "volumes": [vars(v) for v in self.volumes],
            "csv": self.csv,
        }


def _value_at(values: Sequence[Any] | None, i: int) -> Any:
    if values is None or i >= len(values):
        return None
    return values[i]


def _volume(v: Any) -> int:
    # null, NaN and infinite volumes count as 0
    if isinstance(v, (int, float)) and math.isfinite(v):
        return int(v)
    return 0


def build_series(
    symbol: str,
    timeframe: Timeframe,
    source: str,
    timestamps: Sequence[Any],
    opens: Sequence[Any] | None,
    highs: Sequence[Any] | None,
    lows: Sequence[Any] | None,
    closes: Sequence[Any] | None,
    volumes: Sequence[Any] | None,
) -> Series:
    """
    Normalize upstream parallel arrays into a Series.

    A row is kept only when the timestamp and all four OHLC values are present;
    a missing or non-finite volume counts as 0. Upstream ordering is preserved and the CSV
    projection contains exactly the retained rows.
    """
    candles: list[Candle] = []
    points: list[VolumePoint] = []
    rows: list[str] = []

    for i, ts in enumerate(timestamps):
        o = _value_at(opens, i)
        h = _value_at(highs, i)
        l = _value_at(lows, i)
        c = _value_at(closes, i)
        if ts is None or o is None or h is None or l is None or c is None:
            continue  # holidays / data gaps

        volume = _volume(_value_at(volumes, i))
        candle = Candle(time=int(ts), open=float(o), high=float(h), low=float(l), close=float(c))
        candles.append(candle)
        points.append(
            VolumePoint(
                time=candle.time,
                volume=volume,
                direction="up" if candle.close >= candle.open else "down",
            )
        )
        rows.append(
            f"{format_date(candle.time)},{candle.open:.2f},{candle.high:.2f},"
            f"{candle.low:.2f},{candle.close:.2f},{volume}"
        )

    return Series(
        symbol=symbol,
        timeframe=timeframe,
        source=source,
        candles=candles,
        volumes=points,
        csv=CSV_HEADER + "\n" + "\n".join(rows),
    )


class MarketDataProvider(Protocol):
    """Protocol for providers that answer series and quote requests."""

    name: str

    @property
    def available(self) -> bool:
        """False when the provider is not configured and must be skipped."""
        ...

    async def fetch_series(self, symbol: str, timeframe: Timeframe) -> Series:
        """
        Fetch historical candles for a symbol.

        Raises a MarketDataError subclass on any failure.
        """
        ...

    async def fetch_quote(self, symbol: str) -> str:
        """Fetch the current price as a two-decimal string."""
        ...
