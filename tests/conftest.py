"""
Test configuration for bicifinder.

Provides configuration, normalizer, HTTP client and listing page fixtures.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from bicifinder.config import Config, FetcherConfig
from bicifinder.crawler.http_client import HttpClient
from bicifinder.extractor.normalizer import RecordNormalizer

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Default configuration with instant retries."""
    return Config(fetcher=FetcherConfig(max_attempts=3, base_delay=0.0, max_delay=0.0))


@pytest.fixture
def normalizer(config: Config) -> RecordNormalizer:
    return RecordNormalizer(
        origin=config.upstream.origin,
        placeholder_image=config.records.placeholder_image,
        status=config.records.recovered_status,
    )


@pytest_asyncio.fixture
async def http_client(config: Config) -> AsyncGenerator[HttpClient, None]:
    client = HttpClient(config)
    await client.initialize()
    yield client
    await client.close()


@pytest.fixture
def listing_html() -> str:
    """A listing page with two usable cards, one unusable card and a next link."""
    return """
    <!DOCTYPE html>
    <html>
    <head><title>Bicicletas localizadas</title></head>
    <body>
      <div class="listado-bicicletas">
        <div class="bicicleta-card" data-id="101">
          <img class="imagen" src="/img/bike1.jpg" alt="Trek">
          <h3><span class="marca">Trek</span> <span class="modelo">Marlin 5</span></h3>
          <dl><dt>Color</dt><dd>Rojo</dd><dt>Ciudad</dt><dd>Madrid</dd><dt>Provincia</dt><dd>Madrid</dd></dl>
          <p><strong>Número de serie:</strong> WTU123</p>
        </div>
        <div class="bicicleta-card" data-id="102">
          <img src="data:image/gif;base64,R0lGOD" data-src="https://cdn.example.test/bike2.jpg">
          <span class="marca">Orbea</span>
          <span class="modelo">Alma</span>
          <span class="color">Negro</span>
          <span class="ciudad">Bilbao</span>
        </div>
        <div class="bicicleta-card">
          <span class="color">Azul</span>
        </div>
      </div>
      <ul class="pagination">
        <li class="prev disabled"><a>Anterior</a></li>
        <li class="next"><a href="?page=2">Siguiente</a></li>
      </ul>
    </body>
    </html>
    """


@pytest.fixture
def last_page_html() -> str:
    return """
    <html><body>
      <div class="listado-bicicletas">
        <div class="bicicleta-card" data-id="201">
          <span class="marca">BH</span><span class="modelo">Expert</span>
        </div>
      </div>
      <ul class="pagination">
        <li class="next disabled"><a>Siguiente</a></li>
      </ul>
    </body></html>
    """


@pytest.fixture
def empty_page_html() -> str:
    return """
    <html><body>
      <div class="listado-bicicletas"></div>
      <p class="alert">No se encontraron resultados</p>
    </body></html>
    """
