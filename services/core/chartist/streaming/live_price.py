"""Live price polling with automatic halt after repeated failures."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol


logger = logging.getLogger(__name__)


class QuoteSource(Protocol):
    async def fetch_quote(self, symbol: str) -> str | None:
        ...


class MonitorState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    HALTED = "halted"


@dataclass
class PollingState:
    """Mutable per-session state. Only the session's polling task writes to it."""
    last_price: str | None = None
    consecutive_failures: int = 0
    halted: bool = False


@dataclass(frozen=True)
class PriceUpdate:
    """Read-only snapshot handed to listeners."""
    symbol: str | None
    price: str | None
    halted: bool
    state: MonitorState
    ts: int


class _Session:
    def __init__(self, symbol: str):
        self.symbol = symbol
        self.polling = PollingState()
        self.task: asyncio.Task | None = None
        self.active = True


class LivePriceMonitor:
    """
    Polls a quote source for one symbol at a fixed cadence.

    Idle -> Running on start(); Running -> Halted after max_failures consecutive
    empty quotes; any state -> Idle on stop(). Only one session is active at a
    time and each session runs a single sequential loop, so there is never more
    than one quote request in flight.
    """

    def __init__(
        self,
        quotes: QuoteSource,
        on_update: Callable[[PriceUpdate], None] | None = None,
        poll_seconds: float = 5.0,
        max_failures: int = 5,
    ):
        """
        Args:
            quotes: Anything with `async fetch_quote(symbol) -> str | None`
            on_update: Called with a PriceUpdate on every new price and once on halt
            poll_seconds: Interval between ticks
            max_failures: Consecutive failures before the session halts
        """
        self.quotes = quotes
        self.on_update = on_update
        self.poll_seconds = poll_seconds
        self.max_failures = max(1, max_failures)
        self._session: _Session | None = None

    @property
    def state(self) -> MonitorState:
        if self._session is None:
            return MonitorState.IDLE
        if self._session.polling.halted:
            return MonitorState.HALTED
        return MonitorState.RUNNING

    @property
    def symbol(self) -> str | None:
        return self._session.symbol if self._session else None

    def snapshot(self) -> PriceUpdate:
        session = self._session
        return PriceUpdate(
            symbol=session.symbol if session else None,
            price=session.polling.last_price if session else None,
            halted=session.polling.halted if session else False,
            state=self.state,
            ts=int(time.time()),
        )

    @property
    def consecutive_failures(self) -> int:
        return self._session.polling.consecutive_failures if self._session else 0

    def start(self, symbol: str) -> None:
        """
        Begin polling `symbol`. Returns immediately; must be called from a running event loop.

        Any previous session is stopped first.
        """
        self.stop()
        session = _Session(symbol)
        self._session = session
        session.task = asyncio.get_running_loop().create_task(
            self._poll(session), name=f"live-price-{symbol}"
        )
        logger.info(f"Started live price polling for {symbol} (every {self.poll_seconds}s)")

    def stop(self) -> None:
        """Cancel the polling task and discard the session. Idempotent."""
        session = self._session
        if session is None:
            return
        session.active = False
        session.polling.consecutive_failures = 0
        if session.task is not None and not session.task.done():
            session.task.cancel()
        self._session = None
        logger.info(f"Stopped live price polling for {session.symbol}")

    async def aclose(self) -> None:
        """Stop and wait for the polling task to finish."""
        task = self._session.task if self._session else None
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _poll(self, session: _Session) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.poll_seconds
        try:
            while session.active:
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
                next_tick = max(next_tick + self.poll_seconds, loop.time())

                try:
                    price = await self.quotes.fetch_quote(session.symbol)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Quote source error for {session.symbol}: {e}")
                    price = None

                if not session.active:
                    return  # stopped while the request was in flight

                if price:
                    session.polling.last_price = price
                    session.polling.consecutive_failures = 0
                    self._emit(session)
                    continue

                session.polling.consecutive_failures += 1
                if session.polling.consecutive_failures >= self.max_failures:
                    session.polling.halted = True
                    logger.warning(
                        f"Live price polling failed {self.max_failures} times for {session.symbol}. "
                        "Stopping updates."
                    )
                    self._emit(session)
                    return

        except asyncio.CancelledError:
            logger.info(f"Live price polling for {session.symbol} cancelled.")
            raise

    def _emit(self, session: _Session) -> None:
        if self.on_update is None:
            return
        update = PriceUpdate(
            symbol=session.symbol,
            price=session.polling.last_price,
            halted=session.polling.halted,
            state=MonitorState.HALTED if session.polling.halted else MonitorState.RUNNING,
            ts=int(time.time()),
        )
        try:
            self.on_update(update)
        except Exception as e:
            logger.error(f"Live price listener failed: {e}", exc_info=True)
