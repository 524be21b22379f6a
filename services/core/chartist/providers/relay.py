"""HTTP GET through an ordered chain of forwarding intermediaries (CORS relays)."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Sequence
from urllib.parse import quote

import aiohttp

from ..errors import RelayExhausted


logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out. The data provider is not responding."


class RelayAttemptError(Exception):
    """A single intermediary attempt failed; the relay moves on to the next one."""
    pass


@dataclass(frozen=True)
class Intermediary:
    """A forwarding endpoint: target URL appended raw, or percent-encoded as a query value."""
    prefix: str
    encode: bool = False

    def build_url(self, target_url: str) -> str:
        if self.encode:
            return self.prefix + quote(target_url, safe="")
        return self.prefix + target_url


DEFAULT_INTERMEDIARIES: tuple[Intermediary, ...] = (
    Intermediary("https://corsproxy.io/?"),
    Intermediary("https://cors.eu.org/"),
    Intermediary("https://thingproxy.freeboard.io/fetch/"),
    Intermediary("https://api.allorigins.win/raw?url=", encode=True),
)


class ProxyRelay:
    """
    Fetch JSON from a target URL through the first intermediary that answers.

    Intermediaries are tried strictly in order, one at a time. Every attempt has
    its own timeout; a failed attempt is logged and the next intermediary is tried.
    """

    def __init__(
        self,
        intermediaries: Sequence[Intermediary] = DEFAULT_INTERMEDIARIES,
        timeout_seconds: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Args:
            intermediaries: Forwarding endpoints in priority order
            timeout_seconds: Total timeout for each individual attempt
            session: Optional shared session (not closed by the relay)
        """
        self.intermediaries = list(intermediaries)
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    async def relay(
        self,
        target_url: str,
        validate: Callable[[Any], None] | None = None,
    ) -> Any:
        """
        GET target_url through the intermediaries and return the parsed JSON.

        Args:
            target_url: Upstream URL to forward
            validate: Optional envelope check; raising RelayAttemptError (or
                ValueError) marks the attempt as failed

        Raises:
            RelayExhausted: every intermediary failed
        """
        last_error: str | None = None

        async with self._session_scope() as session:
            for proxy in self.intermediaries:
                fetch_url = proxy.build_url(target_url)
                try:
                    data = await self._attempt(session, proxy, fetch_url)
                    if validate is not None:
                        validate(data)
                    return data

                except asyncio.CancelledError:
                    raise
                except asyncio.TimeoutError:
                    logger.warning(f"Fetch attempt via {proxy.prefix} timed out")
                    last_error = TIMEOUT_MESSAGE
                except (aiohttp.ClientError, RelayAttemptError, ValueError) as e:
                    logger.warning(f"Fetch attempt via {proxy.prefix} failed: {e}")
                    last_error = str(e)

        raise RelayExhausted(last_error or "All relay attempts failed.")

    async def _attempt(
        self,
        session: aiohttp.ClientSession,
        proxy: Intermediary,
        fetch_url: str,
    ) -> Any:
        async with session.get(
            fetch_url,
            timeout=self.timeout,
            headers={"X-Requested-With": "XMLHttpRequest"},
        ) as response:
            if not 200 <= response.status < 300:
                raise RelayAttemptError(
                    f"Request via {proxy.prefix} failed with status {response.status}"
                )
            # Relays may answer with text/plain
            return await response.json(content_type=None)
