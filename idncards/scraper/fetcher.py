"""
IDN Cards — HTML Fetcher

Live GET requests against the catalog site with a fixed retry budget and
linear backoff. Sends browser-like headers and a pinned Accept-Language:
the site serves different markup per locale, so the header is part of
parsing correctness.

No caching and no pacing here; callers sleep between sequential requests.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from idncards.config import settings

logger = structlog.get_logger(__name__)

MIN_BACKOFF_SECONDS = 1.0


class FetchError(RuntimeError):
    """A URL could not be fetched within the retry budget."""

    def __init__(self, url: str, attempts: int, status_code: int | None = None) -> None:
        self.url = url
        self.attempts = attempts
        self.status_code = status_code
        detail = f"HTTP {status_code}" if status_code is not None else "network error"
        super().__init__(f"{detail} fetching {url} after {attempts} attempts")


class Fetcher:
    """
    Async HTML fetcher sharing one httpx connection pool.

    Usage:
        async with Fetcher() as fetcher:
            html = await fetcher.fetch("https://asia.pokemon-card.com/id/card-search/")
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        timeout: float | None = None,
        accept_language: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._max_attempts = max_attempts or settings.FETCH_MAX_ATTEMPTS
        self._backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.FETCH_BACKOFF_SECONDS
        )
        self._timeout = timeout or settings.FETCH_TIMEOUT_SECONDS
        self._accept_language = accept_language or settings.ACCEPT_LANGUAGE
        self._user_agent = user_agent or settings.USER_AGENT
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self._accept_language,
        }

    async def __aenter__(self) -> Fetcher:
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=self._timeout,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int) -> float:
        """Linear backoff with a floor: attempt 1 -> 1x, attempt 2 -> 2x."""
        return max(self._backoff_seconds * attempt, MIN_BACKOFF_SECONDS)

    async def fetch(self, url: str) -> str:
        """
        GET ``url`` and return the response body as text.

        Network errors and non-2xx responses are retried up to the attempt
        budget.

        Raises:
            FetchError: every attempt failed.
        """
        assert self._client is not None, "Fetcher not initialized. Use 'async with'."

        last_status: int | None = None
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._client.get(url)
                response.raise_for_status()
                return response.text

            except httpx.HTTPStatusError as e:
                last_error = e
                last_status = e.response.status_code
                logger.warning(
                    "fetch_attempt_failed",
                    url=url,
                    attempt=attempt,
                    attempts_left=self._max_attempts - attempt,
                    status_code=last_status,
                )

            except httpx.RequestError as e:
                last_error = e
                last_status = None
                logger.warning(
                    "fetch_attempt_failed",
                    url=url,
                    attempt=attempt,
                    attempts_left=self._max_attempts - attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if attempt < self._max_attempts:
                await asyncio.sleep(self._backoff(attempt))

        logger.error(
            "fetch_failed",
            url=url,
            attempts=self._max_attempts,
            status_code=last_status,
        )
        raise FetchError(url, self._max_attempts, last_status) from last_error
