"""Tests for the HTTP client, retry policy and listing page fetcher."""

import asyncio
import re

import aiohttp
import pytest
from aioresponses import aioresponses

from bicifinder.crawler.http_client import HttpClient
from bicifinder.crawler.page_fetcher import HtmlPageFetcher, listing_params
from bicifinder.crawler.retry import ResponseKind, RetryPolicy, classify_status
from bicifinder.models import Continuation, SearchFilters

URL = "https://www.biciregistro.es/test"
LISTING = re.compile(r"^https://biciregistro\.es/bicicletas/localizadas.*$")


@pytest.mark.unit
class TestRetryPolicy:
    def test_backoff_is_exponential_and_capped(self):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=5.0)
        assert [policy.delay(attempt) for attempt in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.parametrize(
        "status,kind",
        [
            (200, ResponseKind.OK),
            (404, ResponseKind.WRONG_SHAPE),
            (405, ResponseKind.WRONG_SHAPE),
            (401, ResponseKind.AUTH_REQUIRED),
            (403, ResponseKind.AUTH_REQUIRED),
            (0, ResponseKind.RETRYABLE),
            (429, ResponseKind.RETRYABLE),
            (503, ResponseKind.RETRYABLE),
            (400, ResponseKind.REJECTED),
        ],
    )
    def test_classify_status(self, status, kind):
        assert classify_status(status) is kind

    @pytest.mark.asyncio
    async def test_run_retries_then_succeeds(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "done"

        policy = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)
        assert await policy.run(flaky, retry_on=(ConnectionError,)) == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_run_returns_none_when_exhausted(self):
        calls = []

        async def broken():
            calls.append(1)
            raise ConnectionError("down")

        policy = RetryPolicy(max_attempts=2, base_delay=0, max_delay=0)
        assert await policy.run(broken, retry_on=(ConnectionError,)) is None
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_run_propagates_other_errors(self):
        calls = []

        async def broken():
            calls.append(1)
            raise KeyError("bug")

        policy = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)
        with pytest.raises(KeyError):
            await policy.run(broken, retry_on=(ConnectionError,))
        assert len(calls) == 1


@pytest.mark.unit
class TestHttpClient:
    @pytest.mark.asyncio
    async def test_retries_server_errors(self, http_client):
        with aioresponses() as m:
            m.get(URL, status=500)
            m.get(URL, status=502)
            m.get(URL, status=200, body="ok")
            response = await http_client.fetch(URL)

        assert response.status == 200
        assert response.attempts == 3
        assert response.text() == "ok"

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, http_client):
        with aioresponses() as m:
            m.get(URL, status=404)
            response = await http_client.fetch(URL)

        assert response.status == 404
        assert response.attempts == 1
        assert response.kind is ResponseKind.WRONG_SHAPE

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_budget(self, http_client):
        with aioresponses() as m:
            m.get(URL, exception=asyncio.TimeoutError(), repeat=True)
            response = await http_client.fetch(URL)

        assert response.status == 0
        assert response.attempts == 3
        assert response.error is not None
        assert not response.ok

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self, http_client):
        with aioresponses() as m:
            m.get(URL, exception=aiohttp.ClientConnectionError("refused"))
            m.get(URL, status=200, payload={"ok": True})
            response = await http_client.fetch(URL)

        assert response.ok
        assert response.attempts == 2
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_json_of_html_body_is_none(self, http_client):
        with aioresponses() as m:
            m.get(URL, status=200, body="<html></html>", content_type="text/html")
            response = await http_client.fetch(URL)

        assert response.json() is None
        assert response.content_type.startswith("text/html")

    @pytest.mark.asyncio
    async def test_request_before_initialize_fails(self, config):
        client = HttpClient(config)
        with pytest.raises(RuntimeError):
            await client.fetch(URL)


@pytest.mark.unit
class TestHtmlPageFetcher:
    def test_listing_params(self):
        filters = SearchFilters(marca="trek", ciudad="Madrid", searchTerm="roja")
        assert listing_params(filters, 1) == {"marca": "trek", "ciudad": "Madrid", "q": "roja"}
        assert listing_params(filters, 3)["page"] == "3"
        assert listing_params(SearchFilters(), 1) == {}

    @pytest.mark.asyncio
    async def test_fetch_page(self, http_client, config, normalizer, listing_html):
        fetcher = HtmlPageFetcher(http_client, config, normalizer)
        with aioresponses() as m:
            m.get(LISTING, status=200, body=listing_html, content_type="text/html")
            result = await fetcher.fetch_page(SearchFilters(brand="trek"), 2)
            (method, url), calls = next(iter(m.requests.items()))

        assert method == "GET"
        assert url.query["marca"] == "trek"
        assert url.query["page"] == "2"
        assert result.status == 200
        assert len(result.records) == 2
        assert result.continuation is Continuation.MORE

    @pytest.mark.asyncio
    async def test_failed_page_is_empty(self, http_client, config, normalizer):
        fetcher = HtmlPageFetcher(http_client, config, normalizer)
        with aioresponses() as m:
            m.get(LISTING, status=503, repeat=True)
            result = await fetcher.fetch_page(SearchFilters(), 1)

        assert result.records == []
        assert result.status == 503
        assert result.continuation is Continuation.UNKNOWN
