"""
Strategy that paginates the server-rendered listing.
"""

from __future__ import annotations

from typing import List

import structlog

from ..models import Bicycle, SearchFilters
from .pagination import PaginationPolicy, paginate
from .protocols import PageSource

logger = structlog.get_logger(__name__)


class HtmlExtractionStrategy:
    """Walks listing pages from page 1 until a stop condition is met."""

    name = "html"

    def __init__(self, page_source: PageSource, policy: PaginationPolicy | None = None):
        self.page_source = page_source
        self.policy = policy or PaginationPolicy()

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        async def fetch(page: int):
            return await self.page_source.fetch_page(filters, page)

        run = await paginate(fetch, self.policy, label=self.name)
        return run.records
