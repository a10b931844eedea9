"""Utilities."""

import asyncio
import logging

from httpx import AsyncBaseTransport, AsyncClient, HTTPError

LOGGER = logging.getLogger(__name__)


class FetchError(Exception):
    """Error raised when an HTTP fetch fails."""


def retry_interval(interval: float, backoff: float, attempt: int) -> float:
    """Calculate the wait after a failed attempt, growing by `backoff` each time."""
    return interval * pow(1 + backoff, attempt - 1)


async def fetch_text(
    url: str,
    *,
    max_attempts: int = 5,
    interval: float = 1.0,
    backoff: float = 0.25,
    request_timeout: float = 10.0,
    transport: AsyncBaseTransport | None = None,
) -> str:
    """Fetch a text document from an HTTP server, retrying on failure.

    Args:
        url: the address to fetch
        max_attempts: the maximum number of attempts to make
        interval: the wait after the first failed attempt, in seconds
        backoff: the growth rate of the wait between attempts
        request_timeout: the HTTP request timeout, in seconds
        transport: an optional httpx transport

    """
    async with AsyncClient(timeout=request_timeout, transport=transport) as session:
        for attempt in range(1, max_attempts + 1):
            try:
                response = await session.get(url)
                response.raise_for_status()
                return response.text
            except HTTPError as err:
                if attempt >= max_attempts:
                    raise FetchError("Exceeded maximum fetch attempts") from err
                wait = retry_interval(interval, backoff, attempt)
                LOGGER.debug("Fetch attempt %d of %s failed: %s", attempt, url, err)
                await asyncio.sleep(wait)

    raise FetchError("No fetch attempts made")
