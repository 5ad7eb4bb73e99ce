"""
Page Fetcher for the server-rendered listing.
"""

from __future__ import annotations

from typing import Dict

import structlog

from ..config.config import Config
from ..extractor.listing_parser import parse_listing
from ..extractor.normalizer import RecordNormalizer
from ..models import PageResult, SearchFilters
from ..observability.metrics import increment
from .http_client import HttpClient

logger = structlog.get_logger(__name__)

HTML_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}

# Canonical filter name -> listing query parameter.
LISTING_PARAMS = {
    "brand": "marca",
    "model": "modelo",
    "color": "color",
    "serial_number": "numero_serie",
    "registration_number": "numero_matricula",
    "city": "ciudad",
    "province": "provincia",
}


def listing_params(filters: SearchFilters, page: int) -> Dict[str, str]:
    """Query parameters forwarded to the listing; the first page carries no ``page``."""
    params = {LISTING_PARAMS[name]: value for name, value in filters.field_filters().items()}
    if filters.search_term:
        params["q"] = filters.search_term
    if page > 1:
        params["page"] = str(page)
    return params


class HtmlPageFetcher:
    """Fetches and parses one listing page per call.

    Transport failures are retried by the HTTP client; once the budget is spent
    the page is reported empty with an unknown continuation.
    """

    def __init__(self, http_client: HttpClient, config: Config, normalizer: RecordNormalizer):
        self.http_client = http_client
        self.config = config
        self.normalizer = normalizer

    async def fetch_page(self, filters: SearchFilters, page: int) -> PageResult:
        url = self.config.upstream.listing_url
        response = await self.http_client.fetch(
            url,
            params=listing_params(filters, page),
            headers=HTML_HEADERS,
            timeout=self.config.fetcher.timeout,
        )
        increment("pages_fetched_total", strategy="html")

        if not response.ok:
            logger.warning(
                "Listing page unavailable",
                page=page,
                status=response.status,
                attempts=response.attempts,
                error=response.error,
            )
            return PageResult.empty(status=response.status)

        result = parse_listing(response.text(), self.normalizer)
        result.status = response.status
        logger.info(
            "Fetched listing page",
            page=page,
            records=len(result.records),
            continuation=result.continuation.value,
        )
        return result
