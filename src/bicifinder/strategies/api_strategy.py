"""
Strategy that queries the registry's REST layer.

Several endpoint and method combinations have existed over time. Each is probed
with page 1; the first one that yields records is adopted and paginated.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

import structlog

from ..config.config import Config
from ..crawler.http_client import HttpClient
from ..crawler.retry import ResponseKind, classify_status
from ..extractor.api_parser import detect_continuation, extract_items
from ..extractor.normalizer import RecordNormalizer
from ..models import Bicycle, Continuation, PageResult, SearchFilters
from ..observability.metrics import increment
from .pagination import PaginationPolicy, paginate

logger = structlog.get_logger(__name__)

JSON_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Content-Type": "application/json",
}

# Canonical filter name -> REST body field.
API_PARAMS = {
    "brand": "marca",
    "model": "modelo",
    "color": "color",
    "serial_number": "numeroSerie",
    "registration_number": "numeroMatricula",
    "city": "ciudad",
    "province": "provincia",
}


def api_payload(filters: SearchFilters, page: int, page_size: int) -> Dict[str, Any]:
    """Request body for a 1-based ``page``; the REST layer counts from zero."""
    payload: Dict[str, Any] = {"pageNumber": page - 1, "pageSize": page_size}
    for name, value in filters.field_filters().items():
        payload[API_PARAMS[name]] = value
    return payload


class StructuredApiStrategy:
    name = "api"

    def __init__(
        self,
        http_client: HttpClient,
        config: Config,
        normalizer: RecordNormalizer,
        policy: Optional[PaginationPolicy] = None,
    ):
        self.http_client = http_client
        self.config = config
        self.normalizer = normalizer
        self.policy = policy or PaginationPolicy(
            max_pages=config.pagination.api_max_pages,
            max_consecutive_empty=config.pagination.max_consecutive_empty,
            stop_on_unknown=config.pagination.api_stop_on_unknown,
        )

    def endpoint_url(self, endpoint: str) -> str:
        return self.config.upstream.api_base_url.rstrip("/") + "/" + endpoint.lstrip("/")

    def candidates(self) -> Iterator[Tuple[str, List[str]]]:
        for endpoint in self.config.upstream.api_endpoints:
            yield self.endpoint_url(endpoint), list(self.config.upstream.api_methods)

    async def fetch_page(self, url: str, method: str, filters: SearchFilters, page: int) -> PageResult:
        payload = api_payload(filters, page, self.config.pagination.api_page_size)
        if method == "POST":
            response = await self.http_client.request(
                "POST", url, json_body=payload, headers=JSON_HEADERS, timeout=self.config.fetcher.api_timeout
            )
        else:
            response = await self.http_client.request(
                "GET",
                url,
                params={key: str(value) for key, value in payload.items()},
                headers=JSON_HEADERS,
                timeout=self.config.fetcher.api_timeout,
            )
        increment("pages_fetched_total", strategy=self.name)

        if not response.ok:
            # Only a spent retry budget leaves room for a later page to work.
            continuation = Continuation.UNKNOWN if response.kind is ResponseKind.RETRYABLE else Continuation.NO_MORE
            return PageResult(records=[], continuation=continuation, status=response.status)

        data = response.json()
        if data is None:
            logger.warning("REST response is not JSON", url=url, method=method, page=page)
            return PageResult(records=[], continuation=Continuation.NO_MORE, status=response.status)

        records = self.normalizer.normalize_many(extract_items(data))
        return PageResult(records=records, continuation=detect_continuation(data), status=response.status)

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        for url, methods in self.candidates():
            for method in methods:
                first = await self.fetch_page(url, method, filters, 1)
                kind = classify_status(first.status or 0)

                if kind is ResponseKind.AUTH_REQUIRED:
                    logger.info("Endpoint requires authentication, abandoning", url=url, status=first.status)
                    break
                if kind is ResponseKind.WRONG_SHAPE:
                    logger.debug("Endpoint shape rejected", url=url, method=method, status=first.status)
                    continue
                if not first.records:
                    logger.info("Endpoint returned no records", url=url, method=method, status=first.status)
                    continue

                logger.info("Adopted REST endpoint", url=url, method=method, records=len(first.records))

                async def fetch(page: int, url: str = url, method: str = method) -> PageResult:
                    return await self.fetch_page(url, method, filters, page)

                run = await paginate(fetch, self.policy, first_page=first, label=self.name)
                return run.records

        logger.info("No REST endpoint yielded records")
        return []
