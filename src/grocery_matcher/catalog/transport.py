"""
HTTP transport shared by the catalog sources.

Wraps an httpx.AsyncClient with:
  - a per-source RateLimiter applied to every attempt
  - retry with exponential backoff on transport errors and 5xx
  - Retry-After handling for HTTP 429
  - immediate failure on timeout (RequestTimeoutError, no internal retry)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config import CatalogClientConfig
from ..exceptions import NetworkError, RateLimitedError, RequestTimeoutError
from ..models import HealthResult
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str], fallback: float) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds form)."""
    if value is None:
        return fallback
    try:
        seconds = float(value.strip())
    except ValueError:
        return fallback
    return seconds if seconds >= 0 else fallback


class CatalogTransport:
    """Rate-limited, retrying HTTP access to one upstream catalog."""

    def __init__(
        self,
        source_id: str,
        config: CatalogClientConfig,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the transport.

        Args:
            source_id: Source this transport talks to (used in errors and logs).
            config: Base URL, timeout, headers and retry policy.
            client: Pre-built httpx client (tests inject a MockTransport here).
            rate_limiter: Limiter shared by every request of this source.
            sleep: Coroutine used for backoff waits.
        """
        self.source_id = source_id
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            headers=config.headers,
            timeout=config.timeout,
            follow_redirects=True,
        )
        self._rate_limiter = rate_limiter or RateLimiter(config.min_interval, sleep=sleep)
        self._sleep = sleep

    async def __aenter__(self) -> "CatalogTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
    ) -> httpx.Response:
        """
        Send a request, retrying per the configured policy.

        Args:
            method: HTTP method.
            url: URL, absolute or relative to the base URL.
            params: Query string parameters.
            max_retries: Override of the policy's retry count.

        Returns:
            The final response. A 5xx is returned as-is once retries are exhausted.

        Raises:
            RequestTimeoutError: The request timed out (not retried).
            RateLimitedError: HTTP 429 persisted through every retry.
            NetworkError: Transport failures persisted through every retry.
        """
        policy = self.config.retry
        retries = policy.max_retries if max_retries is None else max_retries

        for attempt in range(retries + 1):
            await self._rate_limiter.acquire()
            try:
                response = await self._client.request(method, url, params=params)
            except httpx.TimeoutException as e:
                logger.warning(f"[{self.source_id}] Timeout on {method} {url}")
                raise RequestTimeoutError(
                    f"Request to {url} timed out after {self.config.timeout}s",
                    source_id=self.source_id,
                ) from e
            except httpx.TransportError as e:
                if attempt < retries:
                    delay = policy.backoff(attempt)
                    logger.warning(
                        f"[{self.source_id}] Attempt {attempt + 1}/{retries + 1} failed "
                        f"({type(e).__name__}: {e}), retrying in {delay}s..."
                    )
                    await self._sleep(delay)
                    continue
                logger.error(f"[{self.source_id}] All {retries + 1} attempts failed: {e}")
                raise NetworkError(f"Request to {url} failed: {e}", source_id=self.source_id) from e

            if response.status_code == 429:
                delay = parse_retry_after(
                    response.headers.get("Retry-After"), policy.rate_limit_fallback
                )
                if attempt < retries:
                    logger.warning(
                        f"[{self.source_id}] Rate limited (429), waiting {delay}s before retry"
                    )
                    await self._sleep(delay)
                    continue
                logger.error(f"[{self.source_id}] Still rate limited after {retries + 1} attempts")
                raise RateLimitedError(
                    f"Rate limited on {url}", source_id=self.source_id, retry_after=delay
                )

            if response.status_code >= 500 and attempt < retries:
                delay = policy.backoff(attempt)
                logger.warning(
                    f"[{self.source_id}] Server error {response.status_code} on {url}, "
                    f"retrying in {delay}s..."
                )
                await self._sleep(delay)
                continue

            return response

        # Unreachable: the last attempt either returns or raises
        raise NetworkError(f"Request to {url} failed", source_id=self.source_id)

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Any]:
        """
        GET a URL and decode its JSON body.

        Args:
            url: URL, absolute or relative to the base URL.
            params: Query string parameters.
            allow_not_found: Return None on 404 instead of raising.

        Returns:
            The decoded JSON, or None for an allowed 404.

        Raises:
            NetworkError: Non-2xx status or a body that is not JSON.
        """
        response = await self.send("GET", url, params=params)
        if allow_not_found and response.status_code == 404:
            return None
        if not response.is_success:
            logger.error(
                f"[{self.source_id}] API error {response.status_code}: {response.text[:200]}"
            )
            raise NetworkError(
                f"{url} returned HTTP {response.status_code}", source_id=self.source_id
            )
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{url} returned invalid JSON", source_id=self.source_id) from e

    async def health_check(self, url: str = "/") -> HealthResult:
        """
        Probe the upstream with a single request.

        2xx is healthy ("active"), any other status (429 included) is
        "degraded", and an exception is "broken". Latency is always reported.
        """
        start = time.perf_counter()
        try:
            response = await self.send("GET", url, max_retries=0)
        except RateLimitedError:
            return HealthResult(
                healthy=False,
                status="degraded",
                response_time_ms=(time.perf_counter() - start) * 1000,
                errors=["HTTP 429: Too Many Requests"],
            )
        except (NetworkError, RequestTimeoutError) as e:
            return HealthResult(
                healthy=False,
                status="broken",
                response_time_ms=(time.perf_counter() - start) * 1000,
                errors=[str(e)],
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        if response.is_success:
            return HealthResult(healthy=True, status="active", response_time_ms=elapsed_ms)
        return HealthResult(
            healthy=False,
            status="degraded",
            response_time_ms=elapsed_ms,
            errors=[f"HTTP {response.status_code}: {response.reason_phrase}"],
        )
