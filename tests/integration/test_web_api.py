"""Integration tests for the HTTP API with a stubbed search service."""

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from bicifinder.config import Config
from bicifinder.errors import DisallowedImageSourceError, ImageRelayError, VocabularyUnavailableError
from bicifinder.models import Bicycle, SearchFilters, VocabularyEntry
from bicifinder.relay import RelayedImage
from bicifinder.web.main import create_app

TREK = Bicycle(identifier="1", brand="Trek", model="Marlin", city="Madrid", image_url="/static/placeholder.svg")


class StubService:
    def __init__(self) -> None:
        self.bicycles: List[Bicycle] = [TREK]
        self.search_error: Optional[Exception] = None
        self.vocabulary_error: Optional[Exception] = None
        self.relay_error: Optional[Exception] = None
        self.received: List[SearchFilters] = []

    async def search(self, filters: SearchFilters) -> List[Bicycle]:
        self.received.append(filters)
        if self.search_error is not None:
            raise self.search_error
        return self.bicycles

    async def brands(self) -> List[VocabularyEntry]:
        if self.vocabulary_error is not None:
            raise self.vocabulary_error
        return [VocabularyEntry(1, "Trek"), VocabularyEntry(2, "Orbea")]

    async def colors(self) -> List[VocabularyEntry]:
        return [VocabularyEntry(1, "Rojo")]

    async def relay_image(self, url: Optional[str]) -> RelayedImage:
        if self.relay_error is not None:
            raise self.relay_error
        return RelayedImage(body=b"GIF89a", content_type="image/gif", cache_control="public, max-age=86400")


@pytest.fixture
def service() -> StubService:
    return StubService()


@pytest.fixture
def client(service: StubService):
    app = create_app(config=Config(), service=service)
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.integration
class TestBicyclesEndpoint:
    def test_search(self, client, service):
        response = client.get("/api/bicycles", params={"marca": "trek", "searchTerm": "madrid"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 1
        assert body["data"][0]["identifier"] == "1"
        assert body["data"][0]["brand"] == "Trek"
        assert service.received[0].brand == "trek"
        assert service.received[0].search_term == "madrid"

    def test_no_results_is_success(self, client, service):
        service.bicycles = []
        body = client.get("/api/bicycles").json()
        assert body == {"success": True, "count": 0, "data": []}

    def test_internal_fault(self, client, service):
        service.search_error = RuntimeError("boom")
        response = client.get("/api/bicycles")
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to fetch bicycles"}

    def test_malformed_filter(self, client, service):
        response = client.get("/api/bicycles", params={"marca": "x" * 500})
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert service.received == []

    def test_request_id_header(self, client):
        response = client.get("/api/bicycles", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Process-Time" in response.headers


@pytest.mark.integration
class TestVocabularyEndpoints:
    def test_brands(self, client):
        body = client.get("/api/config/brands").json()
        assert body == {
            "success": True,
            "count": 2,
            "data": [{"id": 1, "label": "Trek"}, {"id": 2, "label": "Orbea"}],
        }

    def test_colors(self, client):
        assert client.get("/api/config/colors").json()["data"] == [{"id": 1, "label": "Rojo"}]

    def test_brands_unavailable(self, client, service):
        service.vocabulary_error = VocabularyUnavailableError("brands", "HTTP 503")
        response = client.get("/api/config/brands")
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to fetch brands"}


@pytest.mark.integration
class TestImageProxy:
    def test_relays_image(self, client):
        response = client.get("/api/proxy-image", params={"url": "https://www.biciregistro.es/a.gif"})
        assert response.status_code == 200
        assert response.content == b"GIF89a"
        assert response.headers["content-type"] == "image/gif"
        assert response.headers["cache-control"] == "public, max-age=86400"

    def test_rejected_source(self, client, service):
        service.relay_error = DisallowedImageSourceError("Invalid image source: evil.example")
        response = client.get("/api/proxy-image", params={"url": "https://evil.example/a.jpg"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_upstream_status(self, client, service):
        service.relay_error = ImageRelayError("Failed to fetch image: HTTP 404", status_code=404)
        response = client.get("/api/proxy-image", params={"url": "https://www.biciregistro.es/missing.jpg"})
        assert response.status_code == 404


@pytest.mark.integration
class TestOperationalEndpoints:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["strategies"] == ["api", "rendered_dom", "html"]

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "bicifinder_strategy_outcomes" in response.text

    def test_placeholder_image_is_served(self, client):
        response = client.get(Config().records.placeholder_image)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")


@pytest.mark.integration
def test_missing_url_rejected_without_outbound_request():
    """The real relay rejects these before sending anything upstream."""
    app = create_app(config=Config())
    with TestClient(app) as test_client:
        response = test_client.get("/api/proxy-image")
        rejected = test_client.get("/api/proxy-image", params={"url": "https://evil.example/a.jpg"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing image URL"}
    assert rejected.status_code == 400
