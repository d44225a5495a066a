"""
Fetcher - Retrying HTTP downloads for pages, feeds and cover images.

Handles:
- HTTP fetching with a fixed user agent
- Outbound URL validation before every request
- Bounded retries with exponential backoff (base delay doubling per attempt)
"""

import asyncio
import logging

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import config
from .exceptions import TransportError
from .url_validator import validate_url

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class Fetcher:
    """Fetches text and binary resources with retry and backoff."""

    def __init__(
        self,
        timeout: int | None = None,
        user_agent: str | None = None,
        base_delay: float | None = None,
        resolve_dns: bool | None = None,
    ):
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self.user_agent = user_agent or config.USER_AGENT
        self.base_delay = base_delay if base_delay is not None else config.RETRY_BASE_DELAY
        self.resolve_dns = resolve_dns if resolve_dns is not None else config.RESOLVE_DNS
        self.headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch_text(self, url: str, max_retries: int) -> str:
        """
        Fetch a URL and return its decoded body.

        Raises:
            TransportError: After max_retries + 1 failed attempts, or for a refused URL
        """
        return await self._fetch_with_retries(url, max_retries, binary=False)

    async def fetch_bytes(self, url: str, max_retries: int) -> bytes:
        """
        Fetch a URL and return its raw body.

        Raises:
            TransportError: After max_retries + 1 failed attempts, or for a refused URL
        """
        return await self._fetch_with_retries(url, max_retries, binary=True)

    async def _fetch_with_retries(self, url: str, max_retries: int, binary: bool):
        try:
            validate_url(url, resolve_dns=self.resolve_dns)
        except ValueError as e:
            raise TransportError(f"Refusing to fetch {url}: {e}") from e

        attempts = max(0, max_retries) + 1
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=self.base_delay),
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    return await self._request(url, binary)
        except RETRYABLE_ERRORS as e:
            raise TransportError(
                f"Failed to fetch {url} after {attempts} attempt(s): {str(e) or type(e).__name__}"
            ) from e

    async def _request(self, url: str, binary: bool) -> str | bytes:
        """Single HTTP GET attempt."""
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True
            ) as resp:
                resp.raise_for_status()
                if binary:
                    return await resp.read()
                return await resp.text()

    @staticmethod
    def _log_retry(retry_state) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(f"Fetch attempt {retry_state.attempt_number} failed: {error}; retrying")
