"""
BicycleSearchService: the entry point shared by the web API and the CLI.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

import structlog

from .config.config import Config, load_config
from .crawler.http_client import HttpClient
from .crawler.page_fetcher import HtmlPageFetcher
from .extractor.normalizer import RecordNormalizer
from .filters import apply_filters, unique_by_identifier
from .models import Bicycle, SearchFilters, VocabularyEntry
from .observability.metrics import increment
from .orchestrator import AcquisitionOrchestrator
from .relay import ImageRelay, RelayedImage
from .strategies.api_strategy import StructuredApiStrategy
from .strategies.html_strategy import HtmlExtractionStrategy
from .strategies.pagination import PaginationPolicy
from .strategies.protocols import AcquisitionStrategy
from .vocabulary import VocabularyCache

logger = structlog.get_logger(__name__)


class BicycleSearchService:
    """
    Wires the acquisition pipeline together and owns the HTTP client.

    Use as an async context manager:

        async with BicycleSearchService(config) as service:
            bikes = await service.search(SearchFilters(brand="trek"))
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        http_client: Optional[HttpClient] = None,
        strategies: Optional[Sequence[AcquisitionStrategy]] = None,
    ):
        self.config = config or load_config()
        self._owns_client = http_client is None
        self.http_client = http_client or HttpClient(self.config)
        self.normalizer = RecordNormalizer(
            origin=self.config.upstream.origin,
            placeholder_image=self.config.records.placeholder_image,
            status=self.config.records.recovered_status,
        )
        self.orchestrator = AcquisitionOrchestrator(strategies or self.build_strategies())
        self.vocabulary = VocabularyCache(self.http_client, self.config)
        self.image_relay = ImageRelay(self.http_client, self.config)

    def build_strategies(self) -> List[AcquisitionStrategy]:
        """Instantiate the strategies named in ``acquisition.strategy_order``."""
        builders: Dict[str, Callable[[], AcquisitionStrategy]] = {
            "api": self._api_strategy,
            "rendered_dom": self._rendered_strategy,
            "html": self._html_strategy,
        }
        strategies = []
        for name in self.config.acquisition.strategy_order:
            if name == "rendered_dom" and not self.config.render.enabled:
                logger.info("Rendered-DOM strategy disabled by configuration")
                continue
            strategies.append(builders[name]())
        return strategies

    def _api_strategy(self) -> AcquisitionStrategy:
        return StructuredApiStrategy(self.http_client, self.config, self.normalizer)

    def _rendered_strategy(self) -> AcquisitionStrategy:
        from .strategies.rendered_strategy import RenderedDomStrategy

        return RenderedDomStrategy(self.config, self.normalizer)

    def _html_strategy(self) -> AcquisitionStrategy:
        policy = PaginationPolicy(
            max_pages=self.config.pagination.max_pages,
            max_consecutive_empty=self.config.pagination.max_consecutive_empty,
        )
        fetcher = HtmlPageFetcher(self.http_client, self.config, self.normalizer)
        return HtmlExtractionStrategy(fetcher, policy)

    async def start(self) -> None:
        await self.http_client.initialize()

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.close()

    async def __aenter__(self) -> "BicycleSearchService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def search(self, filters: SearchFilters) -> List[Bicycle]:
        """Acquire, filter locally, and drop duplicate identifiers."""
        records = await self.orchestrator.acquire(filters)
        results = unique_by_identifier(apply_filters(records, filters))
        increment("records_returned_total", len(results))
        logger.info("Search completed", acquired=len(records), returned=len(results))
        return results

    async def brands(self) -> List[VocabularyEntry]:
        return await self.vocabulary.brands()

    async def colors(self) -> List[VocabularyEntry]:
        return await self.vocabulary.colors()

    async def relay_image(self, url: Optional[str]) -> RelayedImage:
        return await self.image_relay.fetch(url)


async def search_bicycles(filters: SearchFilters, config: Optional[Config] = None) -> List[Bicycle]:
    """One-shot search with a short-lived service."""
    async with BicycleSearchService(config) as service:
        return await service.search(filters)
