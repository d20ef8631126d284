"""
OpenDota API Client with rate limiting, retry logic, and error handling.

Handles all communication with the OpenDota match statistics API.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional

import httpx
from asyncio_throttle import Throttler
from pydantic import ValidationError

from config import Config
from opendota_api.schemas import LeagueMatch, MatchDetail

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60


class OpenDotaAPIError(Exception):
    """Base exception for OpenDota API errors."""
    pass


class OpenDotaAPIRateLimitError(OpenDotaAPIError):
    """Raised when rate limit is exceeded."""
    pass


class OpenDotaAPINonRetryableError(OpenDotaAPIError):
    """Raised for non-retryable errors (4xx except 429)."""
    pass


class OpenDotaAPIClient:
    """Client for interacting with the OpenDota API."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.opendota_api_base_url
        self.api_key = config.opendota_api_key
        self.max_retries = config.max_retries
        self.retry_backoff_base = config.retry_backoff_base
        self.max_retry_delay = config.max_retry_delay

        # Per-minute ceiling plus a fixed delay between consecutive requests
        self.throttler = Throttler(
            rate_limit=config.max_requests_per_minute,
            period=60.0
        )
        self.min_interval = config.min_request_interval
        self.last_request_time = 0.0

        self.client = httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
            transport=transport,
            headers={
                "User-Agent": "dota-fantasy-leaderboard/1.0",
                "Accept": "application/json",
            }
        )

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limiting."""
        await self.throttler.acquire()

        time_since_last = time.monotonic() - self.last_request_time
        if time_since_last < self.min_interval:
            await asyncio.sleep(self.min_interval - time_since_last)

        self.last_request_time = time.monotonic()

    def _is_retryable_error(self, status_code: int) -> bool:
        """Check if error is retryable."""
        # Retryable: 429 (rate limit), 500, 502, 503, 504
        # Non-retryable: 400, 401, 403, 404
        retryable_codes = {429, 500, 502, 503, 504}
        return status_code in retryable_codes

    @staticmethod
    def _retry_after(response: httpx.Response) -> int:
        """Seconds from a Retry-After header; HTTP-date or junk values use the default."""
        try:
            return max(int(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER)), 0)
        except ValueError:
            return DEFAULT_RETRY_AFTER

    def _backoff(self, attempt: int) -> float:
        backoff = min(
            self.retry_backoff_base * (2 ** attempt),
            self.max_retry_delay
        )
        # Add jitter (±25%)
        jitter = backoff * 0.25 * (random.random() * 2 - 1)
        return backoff + jitter

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for httpx request

        Returns:
            httpx.Response object

        Raises:
            OpenDotaAPIRateLimitError: If rate limited
            OpenDotaAPINonRetryableError: If non-retryable error
            OpenDotaAPIError: For other errors after retries exhausted
        """
        if endpoint.startswith("http"):
            url = endpoint
        else:
            base = self.base_url.rstrip("/")
            url = f"{base}/{endpoint.lstrip('/')}"

        if self.api_key:
            params = dict(kwargs.pop("params", None) or {})
            params.setdefault("api_key", self.api_key)
            kwargs["params"] = params

        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                await self._wait_for_rate_limit()

                response = await self.client.request(method, url, **kwargs)

                if response.is_success:
                    return response

                status_code = response.status_code

                if status_code == 429:
                    retry_after = self._retry_after(response)
                    logger.warning(
                        "Rate limited by OpenDota API",
                        extra={
                            "endpoint": endpoint,
                            "retry_after": retry_after,
                            "attempt": attempt + 1
                        }
                    )
                    if attempt < self.max_retries:
                        await asyncio.sleep(min(retry_after, self.max_retry_delay))
                        continue
                    raise OpenDotaAPIRateLimitError(
                        f"Rate limited after {self.max_retries} retries"
                    )

                if not self._is_retryable_error(status_code):
                    error_text = response.text[:500]
                    logger.error(
                        "Non-retryable error from OpenDota API",
                        extra={
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "error": error_text
                        }
                    )
                    raise OpenDotaAPINonRetryableError(
                        f"Non-retryable error {status_code}: {error_text}"
                    )

                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Retryable error from OpenDota API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue

                error_text = response.text[:500]
                raise OpenDotaAPIError(
                    f"Request failed after {self.max_retries} retries: "
                    f"{status_code} - {error_text}"
                )

            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Timeout from OpenDota API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise OpenDotaAPIError(f"Request timeout after {self.max_retries} retries") from e

            except httpx.NetworkError as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Network error from OpenDota API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time,
                            "error": str(e)
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise OpenDotaAPIError(f"Network error after {self.max_retries} retries") from e

        raise OpenDotaAPIError("Request failed") from last_exception

    def _json(self, response: httpx.Response, endpoint: str) -> Any:
        """Decode a JSON body, turning garbage into an OpenDotaAPIError."""
        try:
            return response.json()
        except ValueError as e:
            logger.error("JSON parse failed", extra={
                "endpoint": endpoint,
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type", "unknown"),
                "response_preview": response.text[:500] if response.text else "No text content",
            })
            raise OpenDotaAPIError(f"Failed to parse JSON from {endpoint}: {e}") from e

    async def get_league_matches(self, league_id: int) -> List[LeagueMatch]:
        """
        Get the match list for a league.

        Rows that fail validation are dropped. Ordering is whatever the provider
        returns; callers sort.

        Args:
            league_id: OpenDota league ID

        Returns:
            List of LeagueMatch summaries
        """
        endpoint = f"/leagues/{league_id}/matches"
        response = await self._request_with_retry("GET", endpoint)
        data = self._json(response, endpoint)
        if not isinstance(data, list):
            raise OpenDotaAPIError(f"Expected a list from {endpoint}, got {type(data).__name__}")

        matches = []
        for row in data:
            try:
                matches.append(LeagueMatch.model_validate(row))
            except ValidationError as e:
                logger.warning("Dropping malformed league match row", extra={
                    "league_id": league_id,
                    "error": str(e),
                })

        logger.debug("Fetched league matches", extra={
            "league_id": league_id,
            "matches_count": len(matches)
        })

        return matches

    async def get_match(self, match_id: int) -> MatchDetail:
        """
        Get full match telemetry.

        Args:
            match_id: OpenDota match ID

        Returns:
            Validated MatchDetail

        Raises:
            OpenDotaAPIError: If the request fails or the payload is malformed
        """
        endpoint = f"/matches/{match_id}"
        response = await self._request_with_retry("GET", endpoint)
        data = self._json(response, endpoint)
        try:
            return MatchDetail.model_validate(data)
        except ValidationError as e:
            logger.warning("Quarantined malformed match payload", extra={
                "match_id": match_id,
                "error": str(e),
            })
            raise OpenDotaAPIError(f"Malformed match payload for {match_id}") from e

    async def get_player(self, account_id: int) -> Dict[str, Any]:
        """
        Get a player profile.

        Args:
            account_id: Steam32 account ID

        Returns:
            Player profile data dictionary
        """
        endpoint = f"/players/{account_id}"
        response = await self._request_with_retry("GET", endpoint)
        data = self._json(response, endpoint)
        return data if isinstance(data, dict) else {}

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
