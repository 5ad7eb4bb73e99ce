"""Tests for listing page and REST response parsing."""

from importlib.metadata import version

import pytest
from selectolax.parser import HTMLParser

from bicifinder.extractor.api_parser import detect_continuation as api_continuation
from bicifinder.extractor.api_parser import extract_items
from bicifinder.extractor.listing_parser import detect_continuation, find_cards, parse_listing
from bicifinder.models import Continuation


@pytest.mark.unit
class TestListingParser:
    def test_installed_selectolax_ships_the_parser_backend(self):
        assert int(version("selectolax").split(".")[0]) < 1

    def test_parse_listing(self, normalizer, listing_html):
        result = parse_listing(listing_html, normalizer)
        assert [bike.identifier for bike in result.records] == ["101", "102"]
        assert result.continuation is Continuation.MORE

    def test_lazy_image_on_second_card(self, normalizer, listing_html):
        second = parse_listing(listing_html, normalizer).records[1]
        assert second.image_url == "https://cdn.example.test/bike2.jpg"
        assert second.color == "Negro"
        assert second.city == "Bilbao"

    def test_last_page(self, normalizer, last_page_html):
        result = parse_listing(last_page_html, normalizer)
        assert len(result.records) == 1
        assert result.continuation is Continuation.NO_MORE

    def test_empty_page(self, normalizer, empty_page_html):
        result = parse_listing(empty_page_html, normalizer)
        assert result.records == []
        assert result.continuation is Continuation.UNKNOWN

    def test_blank_document(self, normalizer):
        assert parse_listing("   ", normalizer).records == []

    def test_rel_next_link(self):
        tree = HTMLParser('<nav><a rel="next" href="?page=3">3</a></nav>')
        assert detect_continuation(tree) is Continuation.MORE

    def test_disabled_rel_next_link(self):
        tree = HTMLParser('<nav><a rel="next" class="disabled" aria-disabled="true">Siguiente</a></nav>')
        assert detect_continuation(tree) is Continuation.NO_MORE

    def test_table_row_fallback(self, normalizer):
        html = """
        <table><tbody>
          <tr><td class="marca">Trek</td><td class="modelo">Domane</td></tr>
          <tr><td class="marca">Giant</td><td class="modelo">TCR</td></tr>
        </tbody></table>
        """
        cards = find_cards(HTMLParser(html))
        assert len(cards) == 2
        assert [bike.brand for bike in parse_listing(html, normalizer).records] == ["Trek", "Giant"]


@pytest.mark.unit
class TestApiParser:
    def test_bare_array(self):
        assert extract_items([{"id": 1}, "noise", {"id": 2}]) == [{"id": 1}, {"id": 2}]

    @pytest.mark.parametrize("key", ["content", "data", "bicicletas", "results"])
    def test_wrapped_array(self, key):
        assert extract_items({key: [{"id": 1}], "total": 1}) == [{"id": 1}]

    def test_unknown_shape(self):
        assert extract_items({"items": [{"id": 1}]}) == []
        assert extract_items("nope") == []
        assert extract_items(None) == []

    def test_spring_page_metadata(self):
        assert api_continuation({"content": [], "last": False}) is Continuation.MORE
        assert api_continuation({"content": [], "last": True}) is Continuation.NO_MORE
        assert api_continuation({"totalPages": 3, "number": 1}) is Continuation.MORE
        assert api_continuation({"totalPages": 3, "number": 2}) is Continuation.NO_MORE

    def test_has_more_flags(self):
        assert api_continuation({"hasMore": True}) is Continuation.MORE
        assert api_continuation({"hasNext": False}) is Continuation.NO_MORE

    def test_no_metadata(self):
        assert api_continuation([{"id": 1}]) is Continuation.UNKNOWN
        assert api_continuation({"data": [{"id": 1}]}) is Continuation.UNKNOWN
