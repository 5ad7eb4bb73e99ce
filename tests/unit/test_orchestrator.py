"""Tests for the acquisition orchestrator and the search service."""

from typing import List

import pytest

from bicifinder.models import Bicycle, SearchFilters
from bicifinder.orchestrator import AcquisitionOrchestrator
from bicifinder.service import BicycleSearchService


class StubStrategy:
    def __init__(self, name: str, records: List[Bicycle] = None, error: Exception = None):
        self.name = name
        self.records = records or []
        self.error = error
        self.calls = 0

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


TREK = Bicycle(identifier="1", brand="Trek", city="Madrid")
ORBEA = Bicycle(identifier="2", brand="Orbea", city="Bilbao")


@pytest.mark.unit
class TestAcquisitionOrchestrator:
    @pytest.mark.asyncio
    async def test_falls_back_past_empty_and_failing_strategies(self):
        api = StubStrategy("api")
        rendered = StubStrategy("rendered_dom", error=RuntimeError("browser missing"))
        html = StubStrategy("html", [TREK])

        records = await AcquisitionOrchestrator([api, rendered, html]).acquire(SearchFilters())

        assert records == [TREK]
        assert (api.calls, rendered.calls, html.calls) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_first_non_empty_result_wins(self):
        api = StubStrategy("api", [ORBEA])
        html = StubStrategy("html", [TREK])

        records = await AcquisitionOrchestrator([api, html]).acquire(SearchFilters())

        assert records == [ORBEA]
        assert html.calls == 0

    @pytest.mark.asyncio
    async def test_all_empty_is_not_an_error(self):
        orchestrator = AcquisitionOrchestrator([StubStrategy("api"), StubStrategy("html")])
        assert await orchestrator.acquire(SearchFilters()) == []

    @pytest.mark.asyncio
    async def test_metrics(self):
        orchestrator = AcquisitionOrchestrator([StubStrategy("api", error=ValueError()), StubStrategy("html", [TREK])])
        await orchestrator.acquire(SearchFilters())
        metrics = orchestrator.get_metrics()
        assert metrics["api"]["errors"] == 1
        assert metrics["html"]["hits"] == 1
        assert metrics["html"]["hit_rate"] == 1.0

    def test_requires_a_strategy(self):
        with pytest.raises(ValueError):
            AcquisitionOrchestrator([])


@pytest.mark.unit
class TestBicycleSearchService:
    def test_builds_configured_order(self, config):
        service = BicycleSearchService(config)
        assert service.orchestrator.order == ["api", "rendered_dom", "html"]

    def test_rendered_strategy_can_be_disabled(self, config):
        config.render.enabled = False
        service = BicycleSearchService(config)
        assert service.orchestrator.order == ["api", "html"]

    @pytest.mark.asyncio
    async def test_search_filters_locally_and_deduplicates(self, config):
        duplicate = Bicycle(identifier="1", brand="Trek", model="copy")
        strategy = StubStrategy("html", [TREK, ORBEA, duplicate])

        async with BicycleSearchService(config, strategies=[strategy]) as service:
            results = await service.search(SearchFilters(brand="trek"))

        assert results == [TREK]
