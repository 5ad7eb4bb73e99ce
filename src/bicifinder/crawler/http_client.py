"""
Async HTTP client for the upstream registry with timeouts, retries and metrics.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp
import structlog

from ..config.config import Config
from ..observability.metrics import increment, observe
from .retry import ResponseKind, RetryPolicy, classify_status

logger = structlog.get_logger(__name__)


@dataclass
class UpstreamResponse:
    """Response from the upstream with timing and attempt information.

    ``status`` is ``0`` when no HTTP response was obtained at all.
    """

    status: int
    headers: Dict[str, str]
    body: bytes
    start_ts: float
    end_ts: float
    attempts: int
    url: str
    method: str = "GET"
    error: Optional[str] = field(default=None)

    @property
    def kind(self) -> ResponseKind:
        return classify_status(self.status)

    @property
    def ok(self) -> bool:
        return self.kind is ResponseKind.OK

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def content_type(self) -> Optional[str]:
        return self.header("Content-Type")

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON, returning ``None`` when it is not JSON."""
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError):
            return None


class HttpClient:
    """HTTP client used by every strategy; retries transport faults and 5xx."""

    def __init__(self, config: Config, retry_policy: Optional[RetryPolicy] = None):
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy.from_config(config.fetcher)
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

        logger.info(
            "HTTP client initialized",
            max_attempts=self.retry_policy.max_attempts,
            user_agent=config.upstream.user_agent,
        )

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.config.upstream.user_agent,
                    "Accept-Language": self.config.upstream.accept_language,
                }
            )
            self._is_initialized = True
            logger.info("HTTP client session initialized")

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False
        logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _perform_request(
        self,
        method: str,
        url: str,
        timeout: float,
        params: Optional[Mapping[str, str]],
        json_body: Optional[Any],
        headers: Optional[Mapping[str, str]],
        allow_redirects: bool = True,
    ) -> tuple[int, Dict[str, str], bytes, str]:
        """Perform a single request and read the whole body within ``timeout``."""
        if not self._is_initialized or self.session is None:
            raise RuntimeError("HTTP client not initialized")

        async with asyncio.timeout(timeout):
            async with self.session.request(
                method, url, params=params, json=json_body, headers=headers, allow_redirects=allow_redirects
            ) as response:
                body = await response.read()
                return response.status, dict(response.headers), body, str(response.url)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        allow_redirects: bool = True,
    ) -> UpstreamResponse:
        """
        Send a request, retrying timeouts, connection errors and retryable statuses.

        Non-retryable statuses (404, 405, 401, 403 and other 4xx) are returned on
        the first attempt. After the retry budget is spent the last status is
        returned, or ``0`` if no response was ever received. With
        ``allow_redirects=False`` a 3xx is returned as is. Never raises for
        network or HTTP failures.
        """
        if not self._is_initialized:
            raise RuntimeError("HTTP client not initialized. Call initialize() first.")

        policy = retry_policy or self.retry_policy
        timeout = timeout if timeout is not None else self.config.fetcher.timeout
        method = method.upper()
        start_time = time.time()
        last_status = 0
        last_headers: Dict[str, str] = {}
        last_body = b""
        last_error: Optional[str] = None
        final_url = url
        attempt = 0

        while attempt < policy.max_attempts:
            attempt += 1
            try:
                last_status, last_headers, last_body, final_url = await self._perform_request(
                    method, url, timeout, params, json_body, headers, allow_redirects
                )
                last_error = None
                increment("upstream_requests_total", method=method, status_class=f"{last_status // 100}xx")
                if classify_status(last_status) is not ResponseKind.RETRYABLE:
                    break
                logger.info(
                    "Retryable upstream status",
                    url=url,
                    method=method,
                    status=last_status,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                )
            except asyncio.TimeoutError:
                last_status, last_body, last_headers = 0, b"", {}
                last_error = f"timed out after {timeout}s"
                increment("upstream_requests_total", method=method, status_class="timeout")
                logger.warning("Request timed out", url=url, method=method, attempt=attempt, timeout=timeout)
            except aiohttp.ClientError as e:
                last_status, last_body, last_headers = 0, b"", {}
                last_error = str(e) or type(e).__name__
                increment("upstream_requests_total", method=method, status_class="error")
                logger.warning("Request failed", url=url, method=method, attempt=attempt, error=last_error)

            if attempt < policy.max_attempts:
                increment("upstream_retries_total")
                await asyncio.sleep(policy.delay(attempt))

        end_time = time.time()
        observe("upstream_latency_seconds", end_time - start_time)

        if classify_status(last_status) is ResponseKind.RETRYABLE:
            logger.error(
                "Upstream request exhausted retries",
                url=url,
                method=method,
                status=last_status,
                attempts=attempt,
                error=last_error,
            )

        return UpstreamResponse(
            status=last_status,
            headers=last_headers,
            body=last_body,
            start_ts=start_time,
            end_ts=end_time,
            attempts=attempt,
            url=final_url,
            method=method,
            error=last_error,
        )

    async def fetch(self, url: str, **kwargs: Any) -> UpstreamResponse:
        """GET convenience wrapper around :meth:`request`."""
        return await self.request("GET", url, **kwargs)
