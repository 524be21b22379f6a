"""3-month relative strength of an asset against its benchmark index."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any

from ..providers.yahoo import YahooChartProvider


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Benchmark:
    symbol: str
    name: str


NIFTY_50 = Benchmark("^NSEI", "NIFTY 50")
SP_500 = Benchmark("^GSPC", "S&P 500")


@dataclass(frozen=True)
class RelativeStrength:
    symbol: str
    benchmark: Benchmark
    asset_performance: str  # e.g. "+10.55%"
    benchmark_performance: str

    def to_prompt(self) -> str:
        return (
            "Context: Relative Strength Analysis (3-Month Performance):\n"
            f"- This Asset's Performance: {self.asset_performance}\n"
            f"- Benchmark Index ({self.benchmark.name}) Performance: {self.benchmark_performance}\n"
        )


def benchmark_for(symbol: str) -> Benchmark:
    if symbol.endswith(".NS"):
        return NIFTY_50
    return SP_500


def three_month_performance(payload: Any) -> str | None:
    """Percent change from first to last valid close in a chart payload, e.g. '-3.20%'."""
    try:
        closes = payload["chart"]["result"][0]["indicators"]["quote"][0]["close"]
    except (KeyError, IndexError, TypeError):
        return None
    if not closes:
        return None

    valid = [
        float(c) for c in closes
        if isinstance(c, (int, float)) and not isinstance(c, bool) and math.isfinite(c)
    ]
    if len(valid) < 2 or valid[0] == 0:
        return None

    performance = (valid[-1] - valid[0]) / valid[0] * 100
    sign = "+" if performance >= 0 else ""
    return f"{sign}{performance:.2f}%"


async def compute_relative_strength(
    yahoo: YahooChartProvider,
    symbol: str,
) -> RelativeStrength | None:
    """
    Fetch 3 months of daily closes for the asset and its benchmark.

    Returns None when either side cannot be fetched or computed; this is an
    enrichment and never fails the caller.
    """
    benchmark = benchmark_for(symbol)
    try:
        benchmark_data, asset_data = await asyncio.gather(
            yahoo.fetch_chart(benchmark.symbol, "3mo", "1d"),
            yahoo.fetch_chart(symbol, "3mo", "1d"),
        )
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Could not calculate relative strength for {symbol}: {e}")
        return None

    benchmark_perf = three_month_performance(benchmark_data)
    asset_perf = three_month_performance(asset_data)
    if not benchmark_perf or not asset_perf:
        logger.info(f"Not enough data for relative strength of {symbol} vs {benchmark.name}")
        return None

    return RelativeStrength(
        symbol=symbol,
        benchmark=benchmark,
        asset_performance=asset_perf,
        benchmark_performance=benchmark_perf,
    )
