"""
Command-line entry point for the Chartist market data core.

Usage:
    chartist serve --port 8080
    chartist series AAPL --timeframe Weekly
    chartist quote ^GSPC
    chartist watch RELIANCE.NS --poll 5
"""

import argparse
import asyncio
import logging
import subprocess
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aiohttp

from .config import get_settings
from .errors import AllProvidersFailed
from .market.service import build_market_data_service
from .streaming.live_price import LivePriceMonitor, PriceUpdate
from .utils.timeframes import Timeframe


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Chartist - market data acquisition and live price monitoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chartist series AAPL
  chartist series ^GSPC --timeframe Monthly --rows 10
  chartist watch BTC-USD --poll 2
        """
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL from settings")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    series = sub.add_parser("series", help="Fetch historical candles and print the CSV projection")
    series.add_argument("symbol")
    series.add_argument(
        "--timeframe", "-t",
        default=Timeframe.DAILY.value,
        help="Intraday | Daily | Weekly | Monthly (default: Daily)"
    )
    series.add_argument("--rows", type=int, default=20, help="Number of trailing rows to print")

    quote = sub.add_parser("quote", help="Print the current price")
    quote.add_argument("symbol")

    watch = sub.add_parser("watch", help="Poll the live price until halted or interrupted")
    watch.add_argument("symbol")
    watch.add_argument("--poll", type=float, default=None, help="Polling interval in seconds")

    return parser.parse_args(argv)


@asynccontextmanager
async def open_service(settings, service=None) -> AsyncIterator[Any]:
    """Yield a market data service backed by one HTTP session for the command."""
    if service is not None:
        yield service
        return
    async with aiohttp.ClientSession() as session:
        yield build_market_data_service(settings, session=session)


async def run_series(settings, symbol: str, timeframe: str, rows: int, service=None) -> int:
    async with open_service(settings, service) as service:
        try:
            series = await service.fetch_series(symbol, timeframe)
        except AllProvidersFailed as e:
            print(f"✗ {e}")
            return 1

    lines = series.csv.splitlines()
    print(f"✓ {len(series.candles)} bars for {series.symbol} ({series.timeframe.value}) from {series.source}")
    print(lines[0])
    for line in lines[1:][-rows:]:
        print(line)
    return 0


async def run_quote(settings, symbol: str, service=None) -> int:
    async with open_service(settings, service) as service:
        price = await service.fetch_quote(symbol)
    if price is None:
        print(f"✗ No live price available for {symbol}")
        return 1
    print(f"{symbol}: {price}")
    return 0


async def run_watch(settings, symbol: str, poll_seconds: float, service=None) -> int:
    """Print live prices until the monitor halts; returns 2 on halt."""
    halted = asyncio.Event()

    def on_update(update: PriceUpdate) -> None:
        if update.halted:
            print(f"⚠️  Live updates halted for {update.symbol} (last price: {update.price or 'N/A'})")
            halted.set()
        else:
            print(f"{update.symbol}: {update.price}")

    async with open_service(settings, service) as service:
        monitor = LivePriceMonitor(
            service,
            on_update=on_update,
            poll_seconds=poll_seconds,
            max_failures=settings.live_max_failures,
        )
        monitor.start(symbol)
        try:
            await halted.wait()
        finally:
            await monitor.aclose()
    return 2


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd = [
            sys.executable,
            "-m",
            "uvicorn",
            "chartist.main:app",
            "--host",
            args.host or settings.host,
            "--port",
            str(args.port or settings.port),
        ]
        try:
            return subprocess.call(cmd)
        except KeyboardInterrupt:
            return 0

    try:
        if args.command == "series":
            return asyncio.run(run_series(settings, args.symbol, args.timeframe, args.rows))
        if args.command == "quote":
            return asyncio.run(run_quote(settings, args.symbol))
        if args.command == "watch":
            poll = args.poll if args.poll is not None else settings.live_poll_seconds
            return asyncio.run(run_watch(settings, args.symbol, poll))
    except ValueError as e:
        print(f"✗ {e}")
        return 1
    except KeyboardInterrupt:
        print("\n⌨️  Received Ctrl+C")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
