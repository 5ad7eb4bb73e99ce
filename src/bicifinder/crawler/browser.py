"""
Headless browser session and the browser-backed page fetcher.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol
from urllib.parse import urlencode

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..config.config import Config
from ..extractor.listing_parser import parse_listing
from ..extractor.normalizer import RecordNormalizer
from ..models import PageResult, SearchFilters
from ..observability.metrics import increment
from .page_fetcher import listing_params
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


class BrowserPage(Protocol):
    """The subset of a Playwright ``Page`` the fetcher relies on."""

    async def goto(self, url: str, **kwargs: Any) -> Any: ...

    async def wait_for_selector(self, selector: str, **kwargs: Any) -> Any: ...

    async def content(self) -> str: ...


@asynccontextmanager
async def playwright_page(config: Config) -> AsyncIterator[BrowserPage]:
    """Launch an isolated browser and yield a fresh page.

    The browser is closed on every exit path, cancellation included.
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.render.headless, args=BROWSER_ARGS)
        try:
            context = await browser.new_context(
                user_agent=config.upstream.user_agent,
                locale="es-ES",
                viewport={"width": 1366, "height": 900},
            )
            page = await context.new_page()
            page.set_default_timeout(config.render.navigation_timeout * 1000)
            logger.debug("Browser session opened")
            yield page
        finally:
            await browser.close()
            logger.debug("Browser session closed")


class BrowserPageFetcher:
    """Navigates the client-rendered view and parses the rendered DOM."""

    def __init__(self, page: BrowserPage, config: Config, normalizer: RecordNormalizer, retry_policy: RetryPolicy):
        self.page = page
        self.config = config
        self.normalizer = normalizer
        self.retry_policy = retry_policy
        self.marker_selector = ", ".join(config.render.marker_selectors)

    def url_for(self, filters: SearchFilters, page: int) -> str:
        params = listing_params(filters, page)
        base = self.config.upstream.render_url
        return f"{base}?{urlencode(params)}" if params else base

    async def _wait_for_content(self, url: str) -> None:
        try:
            await self.page.wait_for_selector(
                self.marker_selector,
                timeout=self.config.render.marker_timeout * 1000,
                state="attached",
            )
        except PlaywrightTimeoutError:
            # Some valid pages use markup outside the marker set.
            logger.info("Content marker not found, capturing anyway", url=url)

    async def _render(self, url: str) -> str:
        await self.page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self.config.render.navigation_timeout * 1000,
        )
        await self._wait_for_content(url)
        return await self.page.content()

    async def fetch_page(self, filters: SearchFilters, page: int) -> PageResult:
        url = self.url_for(filters, page)
        html = await self.retry_policy.run(
            lambda: self._render(url),
            retry_on=(PlaywrightError, TimeoutError),
            description="browser navigation",
        )
        increment("pages_fetched_total", strategy="rendered_dom")
        if html is None:
            return PageResult.empty()

        result = parse_listing(html, self.normalizer)
        logger.info(
            "Captured rendered page",
            page=page,
            records=len(result.records),
            continuation=result.continuation.value,
        )
        return result
