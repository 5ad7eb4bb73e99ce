"""
Image relay restricted to the upstream registry's hosts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urljoin, urlparse

import structlog

from .config.config import Config
from .crawler.http_client import HttpClient, UpstreamResponse
from .errors import DisallowedImageSourceError, ImageRelayError
from .observability.metrics import increment

logger = structlog.get_logger(__name__)

IMAGE_HEADERS = {"Accept": "image/webp,image/apng,image/*,*/*;q=0.8"}
DEFAULT_CONTENT_TYPE = "image/jpeg"
MAX_URL_LENGTH = 2048
MAX_REDIRECTS = 3
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
ALLOWED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class RelayedImage:
    body: bytes
    content_type: str
    cache_control: str


def validate_image_url(url: str | None, allowed_hosts: Iterable[str]) -> str:
    """
    Validate that ``url`` points at an allowed upstream host.

    Raises:
        DisallowedImageSourceError: if the URL is missing, malformed, not
            http(s), or hosted anywhere else.
    """
    if not url:
        raise DisallowedImageSourceError("Missing image URL")
    if len(url) > MAX_URL_LENGTH:
        raise DisallowedImageSourceError(f"Image URL exceeds maximum length of {MAX_URL_LENGTH}")

    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError as e:
        raise DisallowedImageSourceError(f"Invalid image URL: {e}") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise DisallowedImageSourceError(f"Invalid image source scheme: {parsed.scheme or 'none'}")
    if host not in set(allowed_hosts):
        raise DisallowedImageSourceError(f"Invalid image source: {host or 'no host'}")
    return url


class ImageRelay:
    """Fetches upstream images on behalf of clients that cannot load them directly."""

    def __init__(self, http_client: HttpClient, config: Config):
        self.http_client = http_client
        self.config = config

    @property
    def cache_control(self) -> str:
        return f"public, max-age={self.config.relay.cache_max_age}"

    async def fetch(self, url: str | None) -> RelayedImage:
        try:
            url = validate_image_url(url, self.config.relay.allowed_hosts)
        except DisallowedImageSourceError as e:
            increment("image_relay_total", outcome="rejected")
            logger.warning("Rejected image relay request", url=url, reason=str(e))
            raise

        response = await self._fetch_following_allowed_redirects(url)

        if not response.ok:
            increment("image_relay_total", outcome="upstream_error")
            logger.warning("Upstream image unavailable", url=url, status=response.status, error=response.error)
            raise ImageRelayError(
                f"Failed to fetch image: HTTP {response.status}" if response.status else "Failed to fetch image",
                status_code=response.status or 502,
            )

        increment("image_relay_total", outcome="success")
        return RelayedImage(
            body=response.body,
            content_type=response.content_type or DEFAULT_CONTENT_TYPE,
            cache_control=self.cache_control,
        )

    async def _fetch_following_allowed_redirects(self, url: str) -> UpstreamResponse:
        """Fetch ``url``, following redirects only while they stay on allowed hosts."""
        headers = {**IMAGE_HEADERS, "Referer": f"{self.config.upstream.origin}/"}
        target = url
        for _ in range(MAX_REDIRECTS + 1):
            response = await self.http_client.fetch(
                target, headers=headers, timeout=self.config.relay.timeout, allow_redirects=False
            )
            if response.status not in REDIRECT_STATUSES:
                return response

            location = response.header("Location")
            if not location:
                raise ImageRelayError("Failed to fetch image: redirect without location", status_code=502)
            try:
                target = validate_image_url(urljoin(target, location), self.config.relay.allowed_hosts)
            except DisallowedImageSourceError as e:
                increment("image_relay_total", outcome="rejected")
                logger.warning("Rejected image redirect", url=url, location=location, reason=str(e))
                raise ImageRelayError(f"Image redirect rejected: {e}", status_code=502) from e

        increment("image_relay_total", outcome="upstream_error")
        raise ImageRelayError("Failed to fetch image: too many redirects", status_code=502)
