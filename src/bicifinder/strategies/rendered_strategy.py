"""
Strategy that loads the client-rendered search view in a headless browser.
"""

from __future__ import annotations

from typing import AsyncContextManager, Callable, List, Optional

import structlog

from ..config.config import Config
from ..crawler.browser import BrowserPage, BrowserPageFetcher, playwright_page
from ..crawler.retry import RetryPolicy
from ..extractor.normalizer import RecordNormalizer
from ..models import Bicycle, PageResult, SearchFilters
from .pagination import PaginationPolicy, paginate

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[BrowserPage]]


class RenderedDomStrategy:
    """
    Paginates the rendered DOM with one browser session per acquisition.

    The session is entered with ``async with`` so it is released whether the
    acquisition completes, raises, or is cancelled.
    """

    name = "rendered_dom"

    def __init__(
        self,
        config: Config,
        normalizer: RecordNormalizer,
        retry_policy: Optional[RetryPolicy] = None,
        session_factory: Optional[SessionFactory] = None,
        policy: Optional[PaginationPolicy] = None,
    ):
        self.config = config
        self.normalizer = normalizer
        self.retry_policy = retry_policy or RetryPolicy.from_config(config.fetcher)
        self.session_factory = session_factory or (lambda: playwright_page(config))
        self.policy = policy or PaginationPolicy(
            max_pages=config.render.max_pages,
            max_consecutive_empty=config.pagination.max_consecutive_empty,
        )

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        async with self.session_factory() as page:
            fetcher = BrowserPageFetcher(page, self.config, self.normalizer, self.retry_policy)

            async def fetch(page_number: int) -> PageResult:
                return await fetcher.fetch_page(filters, page_number)

            run = await paginate(fetch, self.policy, label=self.name)
        return run.records
