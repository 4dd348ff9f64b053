"""Low-level Odesli (song.link) HTTP client.

This module provides a small client responsible for:
- Applying a shared, pre-request rate limiter.
- Performing HTTP GET requests against the links endpoint.
- Retrying on HTTP 429 responses.
- Returning parsed JSON dictionaries (no business mapping).
"""

import asyncio
import logging
from types import TracebackType
from typing import Any

import aiohttp

from enrichment.api_helpers.odesli_rate_limiter import (
    RequestRateLimiter,
    get_shared_odesli_rate_limiter,
)
from enrichment.exceptions import (
    MalformedResponseError,
    OdesliAPIError,
    OdesliNotFoundError,
    OdesliRateLimitError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.song.link/v1-alpha.1/links"
RATE_LIMIT_BACKOFF_SECONDS = 5.0


class OdesliClient:
    """HTTP client for Odesli link-resolution requests.

    Args:
        session: Optional aiohttp-style session whose `session.get(...)` returns an
            async context manager. When omitted, one is created lazily and closed
            by `close()`.
        limiter: Optional limiter override. Defaults to the process-wide shared limiter.
        base_url: Links endpoint.
        api_key: Optional Odesli API key.
        user_country: Country code used for lookups.
        timeout_seconds: Total request timeout in seconds.
        max_rate_limit_retries: Retries after an HTTP 429 response.
    """

    def __init__(
        self,
        *,
        session: Any | None = None,
        limiter: RequestRateLimiter | Any | None = None,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        user_country: str = "US",
        timeout_seconds: float = 10.0,
        max_rate_limit_retries: int = 3,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._limiter = limiter or get_shared_odesli_rate_limiter()
        self._base_url = base_url
        self._api_key = api_key
        self._user_country = user_country
        self._timeout = aiohttp.ClientTimeout(total=float(timeout_seconds))
        self._max_retries = max_rate_limit_retries

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _params(self, spotify_id: str) -> dict[str, str]:
        params = {
            "url": f"https://open.spotify.com/track/{spotify_id}",
            "userCountry": self._user_country,
            "songIfSingle": "true",
        }
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def get_links(self, spotify_id: str) -> dict[str, Any]:
        """Fetch the cross-platform links document for a Spotify track.

        The shared limiter is acquired before each request attempt. HTTP 429
        responses are retried up to `max_rate_limit_retries` times.

        Args:
            spotify_id: Spotify track identifier.

        Returns:
            The decoded JSON object.

        Raises:
            OdesliNotFoundError: Odesli has no entity for the identifier (400/404).
            OdesliRateLimitError: HTTP 429 persisted after all retries.
            OdesliAPIError: Network failure or any other non-200 status.
            MalformedResponseError: The body is not a JSON object.
        """
        params = self._params(spotify_id)
        session = self._get_session()
        retry = 0
        while True:
            await self._limiter.acquire()
            try:
                async with session.get(
                    self._base_url, params=params, timeout=self._timeout
                ) as response:
                    if response.status == 200:
                        try:
                            result = await response.json()
                        except (aiohttp.ContentTypeError, ValueError) as e:
                            raise MalformedResponseError(
                                f"Odesli returned invalid JSON for {spotify_id}"
                            ) from e
                        if not isinstance(result, dict):
                            raise MalformedResponseError(
                                f"Odesli returned a non-object payload for {spotify_id}"
                            )
                        return result

                    if response.status == 429:
                        if retry < self._max_retries:
                            retry += 1
                            logger.warning(
                                "Odesli rate limited for %s, retry %s/%s",
                                spotify_id,
                                retry,
                                self._max_retries,
                            )
                            await asyncio.sleep(RATE_LIMIT_BACKOFF_SECONDS * retry)
                            continue
                        raise OdesliRateLimitError(
                            f"Odesli rate limit exhausted for {spotify_id}"
                        )

                    if response.status in (400, 404):
                        raise OdesliNotFoundError(
                            f"Odesli has no entity for Spotify track {spotify_id}"
                        )

                    raise OdesliAPIError(
                        f"Odesli HTTP {response.status} for {spotify_id}"
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise OdesliAPIError(
                    f"Odesli request failed for {spotify_id}: {e}"
                ) from e

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "OdesliClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
