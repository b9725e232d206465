"""
Fetches asset bodies (covers, audio) from signed object-store URLs into memory,
with a pooled aiohttp session and retry on transient failures.
"""

import asyncio
import logging

import aiohttp

from media_cache.exceptions import FetchError
from media_cache.utils.formatting import redact_url

log = logging.getLogger(__name__)

_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class AssetFetcher:
    """Downloads whole asset bodies with retry logic and a shared connection pool."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_connections: int = 8,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the aiohttp ClientSession owned by this fetcher."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=600,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
            # Signed URLs carry their own credentials; never send cookies along
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                cookie_jar=aiohttp.DummyCookieJar(),
            )
            log.debug(f"Created fetch pool with limit_per_host={self.max_connections}")
        return self._session

    async def close(self) -> None:
        """Closes the underlying connection pool."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                log.debug("Fetch connection pool closed.")
            self._session = None

    async def fetch(self, url: str) -> bytes:
        """
        Downloads the body at `url`.

        Connection errors, timeouts and retryable statuses (429, 5xx) are retried
        with exponential backoff. Any other non-2xx status fails immediately,
        since a rejected signature does not get better by asking again.

        Raises:
            FetchError: If the body could not be downloaded.
        """
        last_error: FetchError | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await self._get_session()
                async with session.get(url, allow_redirects=True) as response:
                    if response.status in _RETRYABLE_STATUSES:
                        last_error = FetchError(
                            url, f"HTTP {response.status}", status=response.status
                        )
                    elif response.status >= 400:
                        raise FetchError(
                            url, f"HTTP {response.status}", status=response.status
                        )
                    else:
                        return await response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = FetchError(url, f"{type(e).__name__}: {e}")

            log.debug(
                f"Fetch attempt {attempt}/{self.max_attempts} for "
                f"'{redact_url(url)}' failed: {last_error}."
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise last_error or FetchError(url, "No attempts made")

    async def __aenter__(self) -> "AssetFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
